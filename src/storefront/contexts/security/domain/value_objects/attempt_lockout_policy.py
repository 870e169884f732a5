from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

DEFAULT_MAX_FAILED_ATTEMPTS = 3
DEFAULT_LOCKOUT_STEPS: tuple[timedelta, ...] = (
    timedelta(minutes=1),
    timedelta(minutes=3),
    timedelta(minutes=5),
    timedelta(hours=24),
)


@dataclass(frozen=True, slots=True)
class AttemptLockoutPolicy:
    """
    AttemptLockoutPolicy — escalating lockout after repeated wrong OTP codes.

    The first `max_failed_attempts - 1` misses are free. The miss that reaches the cap locks the
    request for `lockout_steps[0]`; every further miss moves one step up and stays on the last
    step.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/domain/entities/verification_request.py
      - src/storefront/contexts/security/application/use_cases/verification_request_manager.py
    """

    max_failed_attempts: int = DEFAULT_MAX_FAILED_ATTEMPTS
    lockout_steps: tuple[timedelta, ...] = DEFAULT_LOCKOUT_STEPS

    def __post_init__(self) -> None:
        if self.max_failed_attempts <= 0:
            raise ValueError("AttemptLockoutPolicy.max_failed_attempts must be > 0")
        if not self.lockout_steps:
            raise ValueError("AttemptLockoutPolicy.lockout_steps must be non-empty")
        if any(step <= timedelta(0) for step in self.lockout_steps):
            raise ValueError("AttemptLockoutPolicy.lockout_steps must be positive")

    def lockout_for(self, *, failed_attempts: int) -> timedelta | None:
        """
        Return lockout length after `failed_attempts` misses, or `None` below the cap.

        Args:
            failed_attempts: Total misses including the one just recorded.
        Returns:
            timedelta | None: Lockout length or `None`.
        Assumptions:
            Counter is never negative.
        Raises:
            None.
        Side Effects:
            None.
        """
        if failed_attempts < self.max_failed_attempts:
            return None
        level = min(len(self.lockout_steps), 1 + failed_attempts - self.max_failed_attempts)
        return self.lockout_steps[level - 1]
