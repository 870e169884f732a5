from __future__ import annotations

from datetime import datetime
from typing import Protocol


class SecurityClock(Protocol):
    """
    SecurityClock — порт источника текущего времени для security use-cases.

    Every time-gated transition (OTP expiry, lock activation, session staleness) is
    evaluated against this clock at the moment a request touches the record.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/adapters/outbound/time/system_security_clock.py
      - src/storefront/contexts/security/application/use_cases/system_lock_manager.py
    """

    def now(self) -> datetime:
        """
        Return current UTC timestamp used in security flows.

        Args:
            None.
        Returns:
            datetime: Timezone-aware UTC datetime.
        Assumptions:
            Implementations return monotonic wall-clock progression for request flow.
        Raises:
            None.
        Side Effects:
            None.
        """
        ...
