from __future__ import annotations

import logging
from datetime import datetime, timedelta

from storefront.contexts.security.application.ports import (
    AccountRepository,
    SecurityClock,
    SecurityHooks,
    SecuritySleeper,
    SessionRepository,
    UserCriticalSection,
    emit_hook,
)
from storefront.contexts.security.domain.entities import Account
from storefront.contexts.security.domain.utc import ensure_utc_datetime
from storefront.shared_kernel.primitives import UserId

from .security_errors import ActorNotPermittedError, AlreadyInStateError
from .security_models import (
    SessionAdoption,
    SessionCheck,
    SessionCheckStatus,
    SessionConflict,
    SessionDiscard,
)
from .security_results import SecurityResult

log = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = timedelta(milliseconds=100)
DEFAULT_SESSION_LIFETIME = timedelta(minutes=120)


class SessionGuard:
    """
    SessionGuard — single-active-session enforcement for one user at a time.

    Adoption, discard, login and logout of one user run inside `UserCriticalSection`, so two
    forced adoptions never leave `current_session_id` pointing at a row the other deleted.
    Eviction is two-phase: invalidate, settle, delete.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/session_repository.py
      - src/storefront/contexts/security/application/ports/user_critical_section.py
      - src/storefront/contexts/security/adapters/inbound/api/routes/single_session.py
    """

    def __init__(
        self,
        *,
        accounts: AccountRepository,
        sessions: SessionRepository,
        critical_section: UserCriticalSection,
        clock: SecurityClock,
        sleeper: SecuritySleeper,
        settle_delay: timedelta = DEFAULT_SETTLE_DELAY,
        session_lifetime: timedelta = DEFAULT_SESSION_LIFETIME,
        hooks: SecurityHooks | None = None,
    ) -> None:
        """
        Initialize guard dependencies.

        Args:
            accounts: Account persistence port holding `current_session_id`.
            sessions: Session row persistence port.
            critical_section: Per-user mutual exclusion.
            clock: UTC time source.
            sleeper: Sleep abstraction for the settling delay.
            settle_delay: Pause between invalidation and deletion of evicted rows.
            session_lifetime: Idle lifetime after which a session is stale.
            hooks: Optional metrics callbacks.
        Returns:
            None.
        Assumptions:
            Dependencies are initialized and non-null.
        Raises:
            ValueError: If dependency is missing or durations are invalid.
        Side Effects:
            None.
        """
        if accounts is None:  # type: ignore[truthy-bool]
            raise ValueError("SessionGuard requires accounts")
        if sessions is None:  # type: ignore[truthy-bool]
            raise ValueError("SessionGuard requires sessions")
        if critical_section is None:  # type: ignore[truthy-bool]
            raise ValueError("SessionGuard requires critical_section")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("SessionGuard requires clock")
        if sleeper is None:  # type: ignore[truthy-bool]
            raise ValueError("SessionGuard requires sleeper")
        if settle_delay < timedelta(0):
            raise ValueError("SessionGuard.settle_delay must be >= 0")
        if session_lifetime <= timedelta(0):
            raise ValueError("SessionGuard.session_lifetime must be > 0")

        self._accounts = accounts
        self._sessions = sessions
        self._critical_section = critical_section
        self._clock = clock
        self._sleeper = sleeper
        self._settle_delay = settle_delay
        self._session_lifetime = session_lifetime
        self._hooks = hooks if hooks is not None else SecurityHooks()

    def detect_conflict(
        self,
        *,
        user_id: UserId,
        new_session_id: str,
    ) -> SecurityResult[SessionConflict]:
        """
        Report whether a different live session is already current for `user_id`.

        Args:
            user_id: Authenticating user.
            new_session_id: Session of the new login attempt.
        Returns:
            SecurityResult[SessionConflict]: Conflict flag, or `ActorNotPermittedError` for
                unknown accounts.
        Assumptions:
            Stale, invalidated or missing incumbents are not conflicts.
        Raises:
            None.
        Side Effects:
            Reads account and session rows.
        """
        account = self._accounts.find_by_user_id(user_id=user_id)
        if account is None:
            return SecurityResult.failure(ActorNotPermittedError())
        has_conflict = self._has_live_incumbent(
            account=account,
            session_id=new_session_id,
            now=self._now(),
        )
        return SecurityResult.success(
            SessionConflict(user_id=user_id, session_id=new_session_id, has_conflict=has_conflict)
        )

    def force_logout_and_adopt(
        self,
        *,
        user_id: UserId,
        new_session_id: str,
    ) -> SecurityResult[SessionAdoption]:
        """
        Evict every other session of `user_id` and make `new_session_id` current.

        Args:
            user_id: Authenticating user.
            new_session_id: Session to adopt.
        Returns:
            SecurityResult[SessionAdoption]: Adopted session and evicted ids, or
                `ActorNotPermittedError` when the account is unknown or the session id belongs
                to another user.
        Assumptions:
            Readers of an evicted session observe the invalidation marker during the settling
            delay, before the row disappears.
        Raises:
            None.
        Side Effects:
            Touches the new row, invalidates then deletes other rows, updates the account,
            sleeps for the settling delay while holding the per-user section.
        """
        with self._critical_section.hold(user_id=user_id):
            account = self._accounts.find_by_user_id(user_id=user_id)
            if account is None:
                return SecurityResult.failure(ActorNotPermittedError())
            adopted = self._sessions.touch(
                session_id=new_session_id,
                user_id=user_id,
                at=self._now(),
            )
            if adopted is None:
                return SecurityResult.failure(ActorNotPermittedError())

            evicted = self._sessions.invalidate_others(
                user_id=user_id,
                keep_session_id=new_session_id,
            )
            # Old sessions already fail `check_session` while we settle.
            if evicted:
                self._sleeper.sleep(seconds=self._settle_delay.total_seconds())
                self._sessions.delete_many(user_id=user_id, session_ids=evicted)
            self._accounts.set_current_session(user_id=user_id, session_id=new_session_id)

        if evicted:
            emit_hook(self._hooks.on_sessions_evicted, len(evicted))
        log.info(
            "single session adopted user_id=%s session_id=%s evicted=%s",
            user_id,
            new_session_id,
            len(evicted),
        )
        return SecurityResult.success(
            SessionAdoption(
                user_id=user_id,
                session_id=new_session_id,
                evicted_session_ids=evicted,
            )
        )

    def cancel_and_discard(
        self,
        *,
        user_id: UserId,
        new_session_id: str,
    ) -> SecurityResult[SessionDiscard]:
        """
        Log out the new login attempt, leaving the incumbent session authoritative.

        Args:
            user_id: Authenticating user.
            new_session_id: Session of the rejected attempt.
        Returns:
            SecurityResult[SessionDiscard]: Whether the attempt row was removed.
        Assumptions:
            The current session is never discarded through this path.
        Raises:
            None.
        Side Effects:
            May delete one session row.
        """
        with self._critical_section.hold(user_id=user_id):
            account = self._accounts.find_by_user_id(user_id=user_id)
            if account is None:
                return SecurityResult.failure(ActorNotPermittedError())
            discarded = False
            if account.current_session_id != new_session_id:
                discarded = self._sessions.delete(user_id=user_id, session_id=new_session_id)

        log.info(
            "single session attempt discarded user_id=%s session_id=%s discarded=%s",
            user_id,
            new_session_id,
            discarded,
        )
        return SecurityResult.success(
            SessionDiscard(user_id=user_id, session_id=new_session_id, discarded=discarded)
        )

    def establish_session(
        self,
        *,
        user_id: UserId,
        session_id: str,
    ) -> SecurityResult[SessionAdoption]:
        """
        Make `session_id` current on a conflict-free login.

        Args:
            user_id: Authenticating user.
            session_id: Freshly issued session.
        Returns:
            SecurityResult[SessionAdoption]: Adopted session, or `AlreadyInStateError` when a
                different live session is current and the caller must resolve the conflict.
        Assumptions:
            Conflict resolution goes through force_logout_and_adopt or cancel_and_discard.
        Raises:
            None.
        Side Effects:
            Touches the session row and updates the account pointer.
        """
        with self._critical_section.hold(user_id=user_id):
            account = self._accounts.find_by_user_id(user_id=user_id)
            if account is None:
                return SecurityResult.failure(ActorNotPermittedError())
            now = self._now()
            if self._has_live_incumbent(account=account, session_id=session_id, now=now):
                return SecurityResult.failure(AlreadyInStateError(state="session_active"))
            if self._sessions.touch(session_id=session_id, user_id=user_id, at=now) is None:
                return SecurityResult.failure(ActorNotPermittedError())
            self._accounts.set_current_session(user_id=user_id, session_id=session_id)

        return SecurityResult.success(
            SessionAdoption(user_id=user_id, session_id=session_id, evicted_session_ids=())
        )

    def check_session(self, *, user_id: UserId, session_id: str) -> SecurityResult[SessionCheck]:
        """
        Per-request verdict for a session: active, self-healed adoption, or evicted.

        Args:
            user_id: User the request claims to act for.
            session_id: Session presented by the request.
        Returns:
            SecurityResult[SessionCheck]: Verdict; eviction is a routine value, not an error.
        Assumptions:
            A missing or stale incumbent is replaced by the presenting session.
        Raises:
            None.
        Side Effects:
            Refreshes activity of accepted sessions; may update the account pointer.
        """
        now = self._now()
        record = self._sessions.find(session_id=session_id)
        if (
            record is None
            or record.user_id != user_id
            or not record.is_valid(now=now, lifetime=self._session_lifetime)
        ):
            return self._checked(user_id, session_id, SessionCheckStatus.EVICTED)

        account = self._accounts.find_by_user_id(user_id=user_id)
        if account is None:
            return self._checked(user_id, session_id, SessionCheckStatus.EVICTED)
        if account.current_session_id == session_id:
            self._sessions.touch(session_id=session_id, user_id=user_id, at=now)
            return self._checked(user_id, session_id, SessionCheckStatus.ACTIVE)
        if self._has_live_incumbent(account=account, session_id=session_id, now=now):
            return self._checked(user_id, session_id, SessionCheckStatus.EVICTED)

        with self._critical_section.hold(user_id=user_id):
            account = self._accounts.find_by_user_id(user_id=user_id)
            record = self._sessions.find(session_id=session_id)
            if (
                account is None
                or record is None
                or not record.is_valid(now=now, lifetime=self._session_lifetime)
                or self._has_live_incumbent(account=account, session_id=session_id, now=now)
            ):
                return self._checked(user_id, session_id, SessionCheckStatus.EVICTED)
            self._sessions.touch(session_id=session_id, user_id=user_id, at=now)
            self._accounts.set_current_session(user_id=user_id, session_id=session_id)

        log.info("single session self-healed user_id=%s session_id=%s", user_id, session_id)
        return self._checked(user_id, session_id, SessionCheckStatus.ADOPTED)

    def end_session(self, *, user_id: UserId, session_id: str) -> SecurityResult[SessionDiscard]:
        """
        Normal logout: delete the session row and clear the pointer when it referenced it.
        """
        with self._critical_section.hold(user_id=user_id):
            deleted = self._sessions.delete(user_id=user_id, session_id=session_id)
            self._accounts.clear_current_session(user_id=user_id, expected_session_id=session_id)

        log.info("session ended user_id=%s session_id=%s deleted=%s", user_id, session_id, deleted)
        return SecurityResult.success(
            SessionDiscard(user_id=user_id, session_id=session_id, discarded=deleted)
        )

    def _has_live_incumbent(self, *, account: Account, session_id: str, now: datetime) -> bool:
        current = account.current_session_id
        if current is None or current == session_id:
            return False
        incumbent = self._sessions.find(session_id=current)
        if incumbent is None or incumbent.user_id != account.user_id:
            return False
        return incumbent.is_valid(now=now, lifetime=self._session_lifetime)

    @staticmethod
    def _checked(
        user_id: UserId,
        session_id: str,
        status: SessionCheckStatus,
    ) -> SecurityResult[SessionCheck]:
        return SecurityResult.success(
            SessionCheck(user_id=user_id, session_id=session_id, status=status)
        )

    def _now(self) -> datetime:
        return ensure_utc_datetime(value=self._clock.now(), field_name="clock.now")
