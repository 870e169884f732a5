from __future__ import annotations

from datetime import datetime, timezone

from storefront.contexts.security.application.ports import SecurityClock


class SystemSecurityClock(SecurityClock):
    """
    SystemSecurityClock — platform реализация `SecurityClock` на системном UTC времени.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/clock.py
      - apps/api/wiring/modules/security.py
    """

    def now(self) -> datetime:
        """
        Return current timezone-aware UTC datetime.

        Args:
            None.
        Returns:
            datetime: Current UTC datetime.
        Assumptions:
            System clock is reasonably synchronized across API processes.
        Raises:
            None.
        Side Effects:
            Reads system wall clock.
        """
        return datetime.now(timezone.utc)
