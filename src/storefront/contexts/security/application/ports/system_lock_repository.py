from __future__ import annotations

from datetime import datetime
from typing import Protocol

from storefront.contexts.security.domain.entities import SystemLock


class SystemLockRepository(Protocol):
    """
    SystemLockRepository — порт хранения singleton строки блокировки витрины.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/domain/entities/system_lock.py
      - src/storefront/contexts/security/adapters/outbound/persistence/postgres/
        system_lock_repository.py
      - alembic/versions/20261017_0001_security_v1.py
    """

    def ensure(self, *, lock_key: str, at: datetime) -> SystemLock:
        """
        Provision the row as `open` when absent and return the stored row.

        Args:
            lock_key: Lock key such as `customer_access`.
            at: UTC timestamp recorded when the row is created.
        Returns:
            SystemLock: Stored snapshot (pre-existing rows are returned untouched).
        Assumptions:
            Primary key on `lock_key` keeps exactly one row per key.
        Raises:
            ValueError: If adapter cannot map the row.
        Side Effects:
            May insert one storage record.
        """
        ...

    def get(self, *, lock_key: str) -> SystemLock | None:
        """
        Read the row for `lock_key`.

        Returns:
            SystemLock | None: Snapshot or `None` when not provisioned.
        """
        ...

    def compare_and_set(self, *, expected: SystemLock, replacement: SystemLock) -> bool:
        """
        Replace the row only if status and lock_time still equal `expected`.

        Args:
            expected: Snapshot previously read by the caller.
            replacement: New snapshot for the same key.
        Returns:
            bool: True when the update applied.
        Assumptions:
            Both snapshots share one lock key.
        Raises:
            ValueError: If lock keys differ.
        Side Effects:
            Conditionally writes one storage record.
        """
        ...

    def put(self, *, lock: SystemLock) -> SystemLock:
        """
        Unconditionally write the row.

        Returns:
            SystemLock: Stored snapshot.
        """
        ...
