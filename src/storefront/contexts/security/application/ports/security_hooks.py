from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True, slots=True)
class SecurityHooks:
    """
    SecurityHooks — optional callbacks for security state machine counters.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - apps/api/wiring/modules/security.py
      - src/storefront/contexts/security/application/use_cases/verification_request_manager.py
      - src/storefront/contexts/security/application/use_cases/system_lock_manager.py
      - src/storefront/contexts/security/application/use_cases/session_guard.py
    """

    on_verification_created: Callable[[], None] | None = None
    on_verification_consumed: Callable[[], None] | None = None
    on_verification_rejected: Callable[[], None] | None = None
    on_dispatch_failed: Callable[[], None] | None = None
    on_lock_scheduled: Callable[[], None] | None = None
    on_lock_activated: Callable[[], None] | None = None
    on_lock_released: Callable[[], None] | None = None
    on_sessions_evicted: Callable[[int], None] | None = None


def emit_hook(callback: Callable[..., None] | None, *args: object) -> None:
    """
    Execute optional hook callback.

    Args:
        callback: Callback or `None`.
        *args: Positional values forwarded to the callback.
    Returns:
        None.
    Assumptions:
        Hook callbacks are lightweight counter increments.
    Raises:
        None.
    Side Effects:
        Executes callback when provided.
    """
    if callback is not None:
        callback(*args)
