from __future__ import annotations

import threading
from datetime import datetime

from storefront.contexts.security.application.ports import SystemLockRepository
from storefront.contexts.security.domain.entities import SystemLock


class InMemorySystemLockRepository(SystemLockRepository):
    """
    InMemorySystemLockRepository — process-local lock rows keyed by lock key.

    Related:
      - src/storefront/contexts/security/application/ports/system_lock_repository.py
      - src/storefront/contexts/security/adapters/outbound/persistence/postgres/
        system_lock_repository.py
    """

    def __init__(self) -> None:
        self._rows: dict[str, SystemLock] = {}
        self._mutex = threading.Lock()

    def ensure(self, *, lock_key: str, at: datetime) -> SystemLock:
        with self._mutex:
            existing = self._rows.get(lock_key)
            if existing is not None:
                return existing
            row = SystemLock.opened(lock_key=lock_key, updated_by=None, at=at)
            self._rows[row.lock_key] = row
            return row

    def get(self, *, lock_key: str) -> SystemLock | None:
        with self._mutex:
            return self._rows.get(lock_key)

    def compare_and_set(self, *, expected: SystemLock, replacement: SystemLock) -> bool:
        if expected.lock_key != replacement.lock_key:
            raise ValueError("compare_and_set requires snapshots of the same lock key")
        with self._mutex:
            stored = self._rows.get(expected.lock_key)
            if stored is None:
                return False
            if stored.status is not expected.status or stored.lock_time != expected.lock_time:
                return False
            self._rows[expected.lock_key] = replacement
            return True

    def put(self, *, lock: SystemLock) -> SystemLock:
        with self._mutex:
            self._rows[lock.lock_key] = lock
            return lock
