from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from storefront.contexts.security.application.ports import UserCriticalSection
from storefront.shared_kernel.primitives import UserId


class InMemoryUserCriticalSection(UserCriticalSection):
    """
    InMemoryUserCriticalSection — per-user `threading.Lock` registry for single-process runs.

    Related:
      - src/storefront/contexts/security/application/ports/user_critical_section.py
      - src/storefront/contexts/security/adapters/outbound/persistence/postgres/
        advisory_lock_critical_section.py
    """

    def __init__(self) -> None:
        self._locks: dict[int, threading.Lock] = {}
        self._registry_mutex = threading.Lock()

    @contextmanager
    def hold(self, *, user_id: UserId) -> Iterator[None]:
        with self._registry_mutex:
            lock = self._locks.setdefault(user_id.value, threading.Lock())
        with lock:
            yield
