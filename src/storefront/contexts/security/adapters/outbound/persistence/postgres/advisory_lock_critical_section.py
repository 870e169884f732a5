from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator

import psycopg

from storefront.contexts.security.application.ports import UserCriticalSection
from storefront.shared_kernel.primitives import UserId

_DEFAULT_NAMESPACE = 41873


def _connect(dsn: str) -> Any:
    return psycopg.connect(dsn, autocommit=True)


class PostgresAdvisoryLockCriticalSection(UserCriticalSection):
    """
    PostgresAdvisoryLockCriticalSection — per-user critical section shared across API processes.

    Holds a session-level `pg_advisory_lock(namespace, hashtext(user_id))` on a dedicated
    connection for the duration of the block.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/user_critical_section.py
      - apps/migrations/main.py
      - apps/api/wiring/modules/security.py
    """

    def __init__(
        self,
        *,
        dsn: str,
        namespace: int = _DEFAULT_NAMESPACE,
        connect: Callable[[str], Any] | None = None,
    ) -> None:
        """
        Initialize critical section with DSN and lock namespace.

        Args:
            dsn: PostgreSQL DSN.
            namespace: First advisory lock key; separates session locks from other users.
            connect: Optional connection factory for tests.
        Returns:
            None.
        Assumptions:
            Hash collisions only add serialization between two users.
        Raises:
            ValueError: If DSN is blank.
        Side Effects:
            None.
        """
        normalized_dsn = dsn.strip()
        if not normalized_dsn:
            raise ValueError("PostgresAdvisoryLockCriticalSection requires non-empty dsn")
        self._dsn = normalized_dsn
        self._namespace = namespace
        self._connect = connect if connect is not None else _connect

    @contextmanager
    def hold(self, *, user_id: UserId) -> Iterator[None]:
        parameters = {"namespace": self._namespace, "user_key": str(user_id)}
        with self._connect(self._dsn) as connection:
            connection.execute(
                "SELECT pg_advisory_lock(%(namespace)s, hashtext(%(user_key)s))",
                parameters,
            )
            try:
                yield
            finally:
                connection.execute(
                    "SELECT pg_advisory_unlock(%(namespace)s, hashtext(%(user_key)s))",
                    parameters,
                )
