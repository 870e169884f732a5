from __future__ import annotations

from typing import Protocol


class SecuritySleeper(Protocol):
    """
    SecuritySleeper — sleep abstraction for the session eviction settling delay.

    Related:
      - src/storefront/contexts/security/application/use_cases/session_guard.py
      - src/storefront/contexts/security/adapters/outbound/time/system_security_sleeper.py
    """

    def sleep(self, *, seconds: float) -> None:
        """
        Block current thread for the requested duration.

        Args:
            seconds: Non-negative sleep duration in seconds.
        Returns:
            None.
        Assumptions:
            Called while the per-user critical section is held.
        Raises:
            ValueError: If implementation rejects negative durations.
        Side Effects:
            Blocks current execution context.
        """
        ...
