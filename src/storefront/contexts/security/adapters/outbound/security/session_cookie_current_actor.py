from __future__ import annotations

from datetime import timedelta

from storefront.contexts.security.application.ports import (
    AccountRepository,
    ActorPrincipal,
    CurrentActor,
    CurrentActorUnauthorizedError,
    SecurityClock,
    SessionRepository,
)


class SessionCookieCurrentActor(CurrentActor):
    """
    SessionCookieCurrentActor — resolves `ActorPrincipal` from a session token.

    The session row gives the owner; the account row gives the role. Invalidated and stale
    sessions are rejected the same way as missing ones.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/actor.py
      - src/storefront/contexts/security/adapters/inbound/api/deps/current_actor.py
      - apps/api/wiring/modules/security.py
    """

    def __init__(
        self,
        *,
        sessions: SessionRepository,
        accounts: AccountRepository,
        clock: SecurityClock,
        session_lifetime: timedelta,
    ) -> None:
        """
        Initialize resolver dependencies.

        Args:
            sessions: Session row persistence port.
            accounts: Account persistence port.
            clock: UTC time source for staleness check.
            session_lifetime: Idle lifetime after which a session is stale.
        Returns:
            None.
        Assumptions:
            Session rows are created by the credential login flow.
        Raises:
            ValueError: If dependency is missing.
        Side Effects:
            None.
        """
        if sessions is None:  # type: ignore[truthy-bool]
            raise ValueError("SessionCookieCurrentActor requires sessions")
        if accounts is None:  # type: ignore[truthy-bool]
            raise ValueError("SessionCookieCurrentActor requires accounts")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("SessionCookieCurrentActor requires clock")
        self._sessions = sessions
        self._accounts = accounts
        self._clock = clock
        self._session_lifetime = session_lifetime

    def require(self, *, session_id: str | None) -> ActorPrincipal:
        if session_id is None or not session_id.strip():
            raise CurrentActorUnauthorizedError(
                code="missing_session",
                message="Authentication session is required.",
            )
        record = self._sessions.find(session_id=session_id.strip())
        if record is None or not record.is_valid(
            now=self._clock.now(),
            lifetime=self._session_lifetime,
        ):
            raise CurrentActorUnauthorizedError(
                code="invalid_session",
                message="Authentication session is invalid or expired.",
            )
        account = self._accounts.find_by_user_id(user_id=record.user_id)
        if account is None:
            raise CurrentActorUnauthorizedError(
                code="invalid_session",
                message="Authentication session is invalid or expired.",
            )
        return ActorPrincipal(
            user_id=account.user_id,
            role=account.role,
            session_id=record.session_id,
        )
