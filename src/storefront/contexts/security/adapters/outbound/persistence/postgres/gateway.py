from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence, cast

import psycopg
from psycopg.rows import dict_row


class SecurityPostgresGateway(Protocol):
    """
    SecurityPostgresGateway — минимальный SQL gateway для security Postgres adapters.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/adapters/outbound/persistence/postgres/
        verification_request_repository.py
      - src/storefront/contexts/security/adapters/outbound/persistence/postgres/
        session_repository.py
      - alembic/versions/20261017_0001_security_v1.py
    """

    def fetch_one(self, *, query: str, parameters: Mapping[str, Any]) -> Mapping[str, Any] | None:
        """
        Execute SQL statement and return one mapped row.

        Args:
            query: SQL text.
            parameters: SQL bind parameters mapping.
        Returns:
            Mapping[str, Any] | None: One row or `None`.
        Assumptions:
            Conditional updates use `RETURNING` so a missing row means the condition failed.
        Raises:
            Exception: Driver/storage errors from implementation.
        Side Effects:
            Executes one SQL statement.
        """
        ...

    def fetch_all(
        self,
        *,
        query: str,
        parameters: Mapping[str, Any],
    ) -> tuple[Mapping[str, Any], ...]:
        """
        Execute SQL statement and return all mapped rows.

        Args:
            query: SQL text.
            parameters: SQL bind parameters mapping.
        Returns:
            tuple[Mapping[str, Any], ...]: Query rows in SQL-defined order.
        Assumptions:
            Deterministic ordering is controlled by explicit SQL `ORDER BY` clauses.
        Raises:
            Exception: Driver/storage errors from implementation.
        Side Effects:
            Executes one SQL statement.
        """
        ...

    def execute(self, *, query: str, parameters: Mapping[str, Any]) -> None:
        """
        Execute side-effecting SQL statement without returning rows.
        """
        ...

    def fetch_all_in_transaction(
        self,
        *,
        statements: Sequence[tuple[str, Mapping[str, Any]]],
    ) -> tuple[tuple[Mapping[str, Any], ...], ...]:
        """
        Execute statements in order inside one transaction and return rows of each.

        Args:
            statements: `(query, parameters)` pairs.
        Returns:
            tuple[tuple[Mapping[str, Any], ...], ...]: Rows per statement; empty for statements
                that return nothing.
        Assumptions:
            Either every statement commits or none does.
        Raises:
            Exception: Driver/storage errors from implementation.
        Side Effects:
            Executes several SQL statements on one connection.
        """
        ...


class PsycopgSecurityPostgresGateway(SecurityPostgresGateway):
    """
    PsycopgSecurityPostgresGateway — psycopg3 implementation of security SQL gateway.

    Every call opens its own connection; the connection context commits on success.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/adapters/outbound/persistence/postgres/gateway.py
      - apps/api/wiring/modules/security.py
    """

    def __init__(self, *, dsn: str) -> None:
        """
        Initialize gateway with DSN connection string.

        Args:
            dsn: PostgreSQL DSN.
        Returns:
            None.
        Assumptions:
            DSN points to database with security schema migrated.
        Raises:
            ValueError: If DSN is blank.
        Side Effects:
            None.
        """
        normalized_dsn = dsn.strip()
        if not normalized_dsn:
            raise ValueError("PsycopgSecurityPostgresGateway requires non-empty dsn")
        self._dsn = normalized_dsn

    def fetch_one(self, *, query: str, parameters: Mapping[str, Any]) -> Mapping[str, Any] | None:
        with psycopg.connect(self._dsn, row_factory=cast(Any, dict_row)) as connection:
            with connection.cursor() as cursor:
                cursor.execute(cast(Any, query), parameters)
                row = cursor.fetchone()
        if row is None:
            return None
        return dict(row)

    def fetch_all(
        self,
        *,
        query: str,
        parameters: Mapping[str, Any],
    ) -> tuple[Mapping[str, Any], ...]:
        with psycopg.connect(self._dsn, row_factory=cast(Any, dict_row)) as connection:
            with connection.cursor() as cursor:
                cursor.execute(cast(Any, query), parameters)
                rows = cursor.fetchall()
        return tuple(dict(row) for row in rows)

    def execute(self, *, query: str, parameters: Mapping[str, Any]) -> None:
        with psycopg.connect(self._dsn, row_factory=cast(Any, dict_row)) as connection:
            with connection.cursor() as cursor:
                cursor.execute(cast(Any, query), parameters)

    def fetch_all_in_transaction(
        self,
        *,
        statements: Sequence[tuple[str, Mapping[str, Any]]],
    ) -> tuple[tuple[Mapping[str, Any], ...], ...]:
        results: list[tuple[Mapping[str, Any], ...]] = []
        with psycopg.connect(self._dsn, row_factory=cast(Any, dict_row)) as connection:
            with connection.transaction():
                with connection.cursor() as cursor:
                    for query, parameters in statements:
                        cursor.execute(cast(Any, query), parameters)
                        rows = cursor.fetchall() if cursor.description is not None else []
                        results.append(tuple(dict(row) for row in rows))
        return tuple(results)
