from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True, slots=True)
class NotificationDispatcherHooks:
    """
    NotificationDispatcherHooks — optional callbacks for code delivery counters.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - apps/api/wiring/modules/security.py
      - src/storefront/contexts/security/adapters/outbound/notifications/
        log_only_notification_dispatcher.py
      - src/storefront/contexts/security/adapters/outbound/notifications/
        webhook_notification_dispatcher.py
    """

    on_dispatch_sent: Callable[[], None] | None = None
    on_dispatch_error: Callable[[], None] | None = None
