from __future__ import annotations

import hmac
from dataclasses import dataclass, replace
from datetime import datetime

from storefront.contexts.security.domain.utc import ensure_utc_datetime
from storefront.contexts.security.domain.value_objects import (
    AttemptLockoutPolicy,
    VerificationState,
    VerificationType,
)
from storefront.shared_kernel.primitives import UserId

OTP_CODE_DIGITS = 6


def is_otp_code(value: str) -> bool:
    """
    Return whether `value` is exactly `OTP_CODE_DIGITS` ASCII digits.

    `str.isdigit` alone also accepts Arabic-Indic, fullwidth and superscript digits.
    """
    return len(value) == OTP_CODE_DIGITS and value.isascii() and value.isdigit()


@dataclass(frozen=True, slots=True)
class VerificationRequest:
    """
    VerificationRequest — immutable snapshot of one OTP attribute-change request.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/verification_request_repository.py
      - src/storefront/contexts/security/application/use_cases/verification_request_manager.py
      - alembic/versions/20261017_0001_security_v1.py
    """

    request_id: int
    user_id: UserId
    verification_type: VerificationType
    target_value: str
    code: str
    created_at: datetime
    expires_at: datetime
    state: VerificationState
    updated_at: datetime
    failed_attempts: int = 0
    locked_until: datetime | None = None

    def __post_init__(self) -> None:
        """
        Validate identifier, code format, attempt counter and UTC timestamp ordering.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Codes are stored as zero-padded numeric text, never as integers.
        Raises:
            ValueError: If one of invariants is violated.
        Side Effects:
            None.
        """
        if self.request_id <= 0:
            raise ValueError("VerificationRequest.request_id must be > 0")
        if not self.target_value.strip():
            raise ValueError("VerificationRequest.target_value must be non-empty")
        if not is_otp_code(self.code):
            raise ValueError(
                f"VerificationRequest.code must be {OTP_CODE_DIGITS} ASCII digits"
            )
        if self.failed_attempts < 0:
            raise ValueError("VerificationRequest.failed_attempts must be >= 0")
        ensure_utc_datetime(value=self.created_at, field_name="created_at")
        ensure_utc_datetime(value=self.expires_at, field_name="expires_at")
        ensure_utc_datetime(value=self.updated_at, field_name="updated_at")
        if self.locked_until is not None:
            ensure_utc_datetime(value=self.locked_until, field_name="locked_until")
        if self.expires_at <= self.created_at:
            raise ValueError("VerificationRequest.expires_at must be after created_at")

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def is_expired(self, *, now: datetime) -> bool:
        """
        Return whether the request is expired at `now` (boundary inclusive).
        """
        return self.expires_at <= now

    def is_live(self, *, now: datetime) -> bool:
        """
        Return whether the request is pending and not expired at `now`.
        """
        return not self.is_terminal and not self.is_expired(now=now)

    def is_locked_out(self, *, now: datetime) -> bool:
        return self.locked_until is not None and self.locked_until > now

    def matches_code(self, *, code: str) -> bool:
        """
        Compare submitted code with the stored one in constant time.

        Args:
            code: Submitted code text.
        Returns:
            bool: True when codes are equal; False for any non-ASCII-digit input.
        Assumptions:
            Stored code is always ASCII digits.
        Raises:
            None.
        Side Effects:
            None.
        """
        if not is_otp_code(code):
            return False
        return hmac.compare_digest(self.code.encode("ascii"), code.encode("ascii"))

    def with_failed_attempt(
        self,
        *,
        at: datetime,
        policy: AttemptLockoutPolicy,
    ) -> VerificationRequest:
        """
        Build snapshot with one more wrong-code attempt and the lockout it earns.

        Args:
            at: UTC timestamp of the attempt.
            policy: Escalation table.
        Returns:
            VerificationRequest: Replacement snapshot; code and expiry are unchanged.
        Assumptions:
            Counter survives resend, so resending never resets the lockout ladder.
        Raises:
            ValueError: If request is already terminal.
        Side Effects:
            None.
        """
        if self.is_terminal:
            raise ValueError("VerificationRequest cannot record attempts in terminal state")
        failed_attempts = self.failed_attempts + 1
        lockout = policy.lockout_for(failed_attempts=failed_attempts)
        locked_until = at + lockout if lockout is not None else self.locked_until
        return replace(
            self,
            failed_attempts=failed_attempts,
            locked_until=locked_until,
            updated_at=at,
        )

    def consumed(self, *, at: datetime) -> VerificationRequest:
        return self._terminated(state=VerificationState.CONSUMED, at=at)

    def cancelled(self, *, at: datetime) -> VerificationRequest:
        return self._terminated(state=VerificationState.CANCELLED, at=at)

    def reissued(self, *, code: str, expires_at: datetime, at: datetime) -> VerificationRequest:
        """
        Build pending snapshot with a fresh code and expiry.

        Args:
            code: New six-digit code; the previous one stops being valid.
            expires_at: New expiry timestamp.
            at: UTC timestamp of the reissue.
        Returns:
            VerificationRequest: Replacement snapshot.
        Assumptions:
            Caller persists the snapshot through compare-and-set against `self`.
        Raises:
            ValueError: If request is already terminal or new values are invalid.
        Side Effects:
            None.
        """
        if self.is_terminal:
            raise ValueError("VerificationRequest cannot be reissued from terminal state")
        return replace(self, code=code, expires_at=expires_at, updated_at=at)

    def _terminated(self, *, state: VerificationState, at: datetime) -> VerificationRequest:
        if self.is_terminal:
            raise ValueError(
                f"VerificationRequest {self.request_id} is already {self.state.value}"
            )
        return replace(self, state=state, updated_at=at)
