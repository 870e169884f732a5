from __future__ import annotations

from enum import Enum


class LockStatus(str, Enum):
    """
    LockStatus — status of one system lock row.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/domain/entities/system_lock.py
      - src/storefront/contexts/security/application/use_cases/system_lock_manager.py
    """

    OPEN = "open"
    PENDING_LOCK = "pending_lock"
    LOCKED = "locked"
