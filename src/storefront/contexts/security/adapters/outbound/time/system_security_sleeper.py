from __future__ import annotations

import time

from storefront.contexts.security.application.ports import SecuritySleeper


class SystemSecuritySleeper(SecuritySleeper):
    """
    SystemSecuritySleeper — wall-clock sleeper for the session eviction settling delay.

    Related:
      - src/storefront/contexts/security/application/ports/sleeper.py
      - src/storefront/contexts/security/application/use_cases/session_guard.py
    """

    def sleep(self, *, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("SystemSecuritySleeper.seconds must be non-negative")
        if seconds == 0:
            return
        time.sleep(seconds)
