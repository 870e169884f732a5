from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Mapping

from storefront.contexts.security.application.ports import (
    AccountRepository,
    ActorPrincipal,
    DispatchError,
    NotificationDispatcher,
    OtpCodeGenerator,
    OtpNotification,
    SecurityClock,
    SecurityHooks,
    VerificationRequestRepository,
    emit_hook,
)
from storefront.contexts.security.domain.entities import (
    OTP_CODE_DIGITS,
    VerificationRequest,
    is_otp_code,
)
from storefront.contexts.security.domain.utc import ensure_utc_datetime
from storefront.contexts.security.domain.value_objects import (
    AttemptLockoutPolicy,
    VerificationType,
)

from .security_errors import (
    ActorNotPermittedError,
    DispatchFailureError,
    InvalidOrExpiredError,
    RequestNotFoundError,
    VerificationValidationError,
)
from .security_models import (
    PendingVerificationView,
    VerificationOutcome,
    VerificationRequestView,
)
from .security_results import SecurityResult
from .verification_rules import DEFAULT_VERIFICATION_RULES, VerificationRule

log = logging.getLogger(__name__)

DEFAULT_OTP_TTL = timedelta(minutes=15)
_ATTEMPT_RECORD_RETRIES = 3


class VerificationRequestManager:
    """
    VerificationRequestManager — OTP lifecycle for sensitive account attribute changes.

    Requests move `pending -> consumed` on verify and `pending -> cancelled` on cancel or when
    superseded by a newer request of the same type. Expiry is a timestamp comparison at the
    moment of use. Terminal transitions go through repository compare-and-set, so of several
    concurrent verifies on one request at most one succeeds. Wrong codes count against the
    request and escalate into temporary lockouts per `AttemptLockoutPolicy`.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/verification_request_repository.py
      - src/storefront/contexts/security/application/use_cases/verification_rules.py
      - src/storefront/contexts/security/adapters/inbound/api/routes/verification_requests.py
    """

    def __init__(
        self,
        *,
        requests: VerificationRequestRepository,
        accounts: AccountRepository,
        dispatcher: NotificationDispatcher,
        code_generator: OtpCodeGenerator,
        clock: SecurityClock,
        rules: Mapping[VerificationType, VerificationRule] | None = None,
        code_ttl: timedelta = DEFAULT_OTP_TTL,
        lockout_policy: AttemptLockoutPolicy | None = None,
        hooks: SecurityHooks | None = None,
    ) -> None:
        """
        Initialize manager dependencies.

        Args:
            requests: Verification request persistence port.
            accounts: Account persistence port.
            dispatcher: Code delivery port.
            code_generator: Random code source.
            clock: UTC time source.
            rules: Optional per-type rule table; defaults to email and phone rules.
            code_ttl: Code lifetime.
            lockout_policy: Optional wrong-code escalation; defaults to 3 misses, then
                1/3/5 minutes and 24 hours.
            hooks: Optional metrics callbacks.
        Returns:
            None.
        Assumptions:
            Dependencies are initialized and non-null.
        Raises:
            ValueError: If required dependency is missing or `code_ttl` is not positive.
        Side Effects:
            None.
        """
        if requests is None:  # type: ignore[truthy-bool]
            raise ValueError("VerificationRequestManager requires requests")
        if accounts is None:  # type: ignore[truthy-bool]
            raise ValueError("VerificationRequestManager requires accounts")
        if dispatcher is None:  # type: ignore[truthy-bool]
            raise ValueError("VerificationRequestManager requires dispatcher")
        if code_generator is None:  # type: ignore[truthy-bool]
            raise ValueError("VerificationRequestManager requires code_generator")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("VerificationRequestManager requires clock")
        if code_ttl <= timedelta(0):
            raise ValueError("VerificationRequestManager.code_ttl must be > 0")

        self._requests = requests
        self._accounts = accounts
        self._dispatcher = dispatcher
        self._code_generator = code_generator
        self._clock = clock
        self._rules = dict(rules) if rules is not None else dict(DEFAULT_VERIFICATION_RULES)
        self._code_ttl = code_ttl
        self._lockout_policy = (
            lockout_policy if lockout_policy is not None else AttemptLockoutPolicy()
        )
        self._hooks = hooks if hooks is not None else SecurityHooks()

    def create_request(
        self,
        *,
        actor: ActorPrincipal,
        verification_type: VerificationType,
        target_value: str,
    ) -> SecurityResult[VerificationRequestView]:
        """
        Validate proposed value, persist a pending request and dispatch its code.

        Args:
            actor: Authenticated owner of the request.
            verification_type: Targeted attribute tag.
            target_value: Raw proposed value.
        Returns:
            SecurityResult[VerificationRequestView]: Created request; on dispatch failure the
                result carries both the view and `DispatchFailureError`.
        Assumptions:
            Prior pending requests of the same (user, type) are superseded in the same atomic
            repository call that inserts the new one.
        Raises:
            ValueError: If no rule is registered for `verification_type`.
        Side Effects:
            Cancels prior pending rows, inserts one row, performs one dispatch attempt.
        """
        rule = self._rule_for(verification_type=verification_type)
        account = self._accounts.find_by_user_id(user_id=actor.user_id)
        if account is None:
            return SecurityResult.failure(ActorNotPermittedError())

        normalized = rule.normalize(target_value)
        if normalized is None:
            return SecurityResult.failure(VerificationValidationError(reason="malformed"))
        if not rule.is_different_from_current(value=normalized, account=account):
            return SecurityResult.failure(VerificationValidationError(reason="unchanged"))
        if self._is_taken(rule=rule, value=normalized, actor=actor):
            return SecurityResult.failure(VerificationValidationError(reason="taken"))

        code = self._code_generator.generate(digits=OTP_CODE_DIGITS)
        now = self._now()
        request, superseded = self._requests.supersede_and_insert(
            user_id=actor.user_id,
            verification_type=verification_type,
            target_value=normalized,
            code=code,
            created_at=now,
            expires_at=now + self._code_ttl,
        )
        emit_hook(self._hooks.on_verification_created)
        log.info(
            "verification request created request_id=%s user_id=%s type=%s superseded=%s",
            request.request_id,
            actor.user_id,
            verification_type.value,
            superseded,
        )

        view = VerificationRequestView.from_request(request)
        dispatch_error = self._dispatch(rule=rule, request=request)
        if dispatch_error is not None:
            return SecurityResult.failure(dispatch_error, value=view)
        return SecurityResult.success(view)

    def verify(
        self,
        *,
        actor: ActorPrincipal,
        request_id: int,
        code: str,
    ) -> SecurityResult[VerificationOutcome]:
        """
        Check submitted code and apply the target value exactly once.

        Args:
            actor: Authenticated user; must own the request.
            request_id: Request identifier.
            code: Submitted code text.
        Returns:
            SecurityResult[VerificationOutcome]: Applied value, or `InvalidOrExpiredError` for
                unknown, foreign, terminal, expired, locked-out, malformed or mismatched
                attempts. `VerificationValidationError` when another account took the value
                meanwhile.
        Assumptions:
            Comparison of codes is constant-time. Only ASCII digits form a code.
        Raises:
            None.
        Side Effects:
            Conditionally updates request row and writes account attribute on success; records
            wrong-code attempts on the request.
        """
        normalized_code = code.strip()
        if not is_otp_code(normalized_code):
            return self._rejected(request_id=request_id, actor=actor, reason="malformed_code")

        now = self._now()
        request = self._requests.find_by_id_and_owner(request_id=request_id, user_id=actor.user_id)
        if request is None:
            return self._rejected(request_id=request_id, actor=actor, reason="not_found")
        if request.is_terminal:
            return self._rejected(request_id=request_id, actor=actor, reason="terminal")
        if request.is_expired(now=now):
            return self._rejected(request_id=request_id, actor=actor, reason="expired")
        if request.is_locked_out(now=now):
            return self._rejected(request_id=request_id, actor=actor, reason="locked_out")
        if not request.matches_code(code=normalized_code):
            self._record_failed_attempt(request=request, at=now)
            return self._rejected(request_id=request_id, actor=actor, reason="code_mismatch")

        rule = self._rule_for(verification_type=request.verification_type)
        if self._is_taken(rule=rule, value=request.target_value, actor=actor):
            return SecurityResult.failure(VerificationValidationError(reason="taken"))

        # Only the CAS winner may write the account attribute.
        consumed = request.consumed(at=now)
        if not self._requests.compare_and_set(expected=request, replacement=consumed):
            return self._rejected(request_id=request_id, actor=actor, reason="lost_race")

        self._accounts.apply_verified_attribute(
            user_id=actor.user_id,
            verification_type=request.verification_type,
            value=request.target_value,
            verified_at=now,
        )
        emit_hook(self._hooks.on_verification_consumed)
        log.info(
            "verification request consumed request_id=%s user_id=%s type=%s",
            request_id,
            actor.user_id,
            request.verification_type.value,
        )
        return SecurityResult.success(
            VerificationOutcome(
                request_id=request_id,
                verification_type=request.verification_type,
                applied_value=request.target_value,
                verified_at=now,
            )
        )

    def resend(
        self,
        *,
        actor: ActorPrincipal,
        request_id: int,
    ) -> SecurityResult[VerificationRequestView]:
        """
        Replace code and expiry of an owned pending request and dispatch the new code.

        Args:
            actor: Authenticated user; must own the request.
            request_id: Request identifier.
        Returns:
            SecurityResult[VerificationRequestView]: Refreshed request, `RequestNotFoundError`
                for unknown, foreign or terminal requests, or view plus `DispatchFailureError`.
        Assumptions:
            Expired pending requests may be resent; the old code is overwritten.
        Raises:
            None.
        Side Effects:
            Conditionally updates request row and performs one dispatch attempt.
        """
        request = self._requests.find_by_id_and_owner(request_id=request_id, user_id=actor.user_id)
        if request is None or request.is_terminal:
            return SecurityResult.failure(RequestNotFoundError())

        now = self._now()
        reissued = request.reissued(
            code=self._code_generator.generate(digits=OTP_CODE_DIGITS),
            expires_at=now + self._code_ttl,
            at=now,
        )
        if not self._requests.compare_and_set(expected=request, replacement=reissued):
            return SecurityResult.failure(RequestNotFoundError())

        log.info(
            "verification request resent request_id=%s user_id=%s type=%s",
            request_id,
            actor.user_id,
            request.verification_type.value,
        )
        view = VerificationRequestView.from_request(reissued)
        rule = self._rule_for(verification_type=request.verification_type)
        dispatch_error = self._dispatch(rule=rule, request=reissued)
        if dispatch_error is not None:
            return SecurityResult.failure(dispatch_error, value=view)
        return SecurityResult.success(view)

    def cancel(
        self,
        *,
        actor: ActorPrincipal,
        request_id: int,
    ) -> SecurityResult[VerificationRequestView]:
        """
        Terminate an owned pending request without applying its value.

        Args:
            actor: Authenticated user; must own the request.
            request_id: Request identifier.
        Returns:
            SecurityResult[VerificationRequestView]: Cancelled request or `RequestNotFoundError`.
        Assumptions:
            Expired pending requests may be cancelled.
        Raises:
            None.
        Side Effects:
            Conditionally updates request row.
        """
        request = self._requests.find_by_id_and_owner(request_id=request_id, user_id=actor.user_id)
        if request is None or request.is_terminal:
            return SecurityResult.failure(RequestNotFoundError())

        cancelled = request.cancelled(at=self._now())
        if not self._requests.compare_and_set(expected=request, replacement=cancelled):
            return SecurityResult.failure(RequestNotFoundError())

        log.info(
            "verification request cancelled request_id=%s user_id=%s",
            request_id,
            actor.user_id,
        )
        return SecurityResult.success(VerificationRequestView.from_request(cancelled))

    def get_pending(
        self,
        *,
        actor: ActorPrincipal,
        verification_type: VerificationType,
    ) -> SecurityResult[PendingVerificationView]:
        """
        Return the live pending request of (actor, type), if any.
        """
        self._rule_for(verification_type=verification_type)
        request = self._requests.find_pending(
            user_id=actor.user_id,
            verification_type=verification_type,
            now=self._now(),
        )
        view = VerificationRequestView.from_request(request) if request is not None else None
        return SecurityResult.success(
            PendingVerificationView(verification_type=verification_type, request=view)
        )

    def _record_failed_attempt(self, *, request: VerificationRequest, at: datetime) -> None:
        """
        Persist one wrong-code attempt, re-reading the row when a concurrent writer won.

        Args:
            request: Snapshot the wrong code was checked against.
            at: UTC timestamp of the attempt.
        Returns:
            None.
        Assumptions:
            Compare-and-set matches on `failed_attempts`, so concurrent misses never overwrite
            each other's increment.
        Raises:
            None.
        Side Effects:
            Conditionally updates request row; logs when a lockout starts.
        """
        current: VerificationRequest | None = request
        for _ in range(_ATTEMPT_RECORD_RETRIES):
            if current is None or current.is_terminal:
                return
            recorded = current.with_failed_attempt(at=at, policy=self._lockout_policy)
            if self._requests.compare_and_set(expected=current, replacement=recorded):
                if recorded.locked_until != current.locked_until:
                    log.warning(
                        "verification request locked out request_id=%s user_id=%s "
                        "failed_attempts=%s locked_until=%s",
                        recorded.request_id,
                        recorded.user_id,
                        recorded.failed_attempts,
                        recorded.locked_until,
                    )
                return
            current = self._requests.find_by_id_and_owner(
                request_id=request.request_id,
                user_id=request.user_id,
            )
        log.warning(
            "verification attempt not recorded request_id=%s user_id=%s",
            request.request_id,
            request.user_id,
        )

    def _rule_for(self, *, verification_type: VerificationType) -> VerificationRule:
        rule = self._rules.get(verification_type)
        if rule is None:
            raise ValueError(f"no verification rule for type {verification_type.value!r}")
        return rule

    def _is_taken(self, *, rule: VerificationRule, value: str, actor: ActorPrincipal) -> bool:
        return self._accounts.is_held_by_other(
            verification_type=rule.verification_type,
            values=rule.uniqueness_candidates(value),
            excluding_user_id=actor.user_id,
        )

    def _dispatch(
        self,
        *,
        rule: VerificationRule,
        request: VerificationRequest,
    ) -> DispatchFailureError | None:
        """
        Send request code through the rule channel and convert failure into a result error.

        Args:
            rule: Rule of the request type.
            request: Persisted request carrying the code to deliver.
        Returns:
            DispatchFailureError | None: Error when delivery failed, otherwise `None`.
        Assumptions:
            Persisted state is never rolled back on delivery failure.
        Raises:
            None.
        Side Effects:
            Performs one outbound delivery attempt; logs failures.
        """
        try:
            self._dispatcher.send(
                user_id=request.user_id,
                channel=rule.channel,
                payload=OtpNotification(
                    request_id=request.request_id,
                    verification_type=request.verification_type,
                    destination=request.target_value,
                    code=request.code,
                    expires_at=request.expires_at,
                ),
            )
        except DispatchError as error:
            emit_hook(self._hooks.on_dispatch_failed)
            log.warning(
                "verification code dispatch failed request_id=%s user_id=%s channel=%s reason=%s",
                request.request_id,
                request.user_id,
                rule.channel.value,
                error.reason,
            )
            return DispatchFailureError(channel=rule.channel.value)
        return None

    def _rejected(
        self,
        *,
        request_id: int,
        actor: ActorPrincipal,
        reason: str,
    ) -> SecurityResult[VerificationOutcome]:
        emit_hook(self._hooks.on_verification_rejected)
        log.info(
            "verification attempt rejected request_id=%s user_id=%s reason=%s",
            request_id,
            actor.user_id,
            reason,
        )
        return SecurityResult.failure(InvalidOrExpiredError())

    def _now(self) -> datetime:
        return ensure_utc_datetime(value=self._clock.now(), field_name="clock.now")
