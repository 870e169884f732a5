from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from storefront.contexts.security.application.ports import SessionRepository
from storefront.contexts.security.domain.entities import SessionRecord
from storefront.shared_kernel.primitives import UserId

from .gateway import SecurityPostgresGateway
from .timestamps import as_utc_or_none


class PostgresSessionRepository(SessionRepository):
    """
    PostgresSessionRepository — Postgres adapter for authenticated session rows.

    Invalidation writes `last_activity = NULL`; deletion follows after the settling delay.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/session_repository.py
      - src/storefront/contexts/security/application/use_cases/session_guard.py
      - alembic/versions/20261017_0001_security_v1.py
    """

    def __init__(
        self,
        *,
        gateway: SecurityPostgresGateway,
        sessions_table: str = "sessions",
    ) -> None:
        if gateway is None:  # type: ignore[truthy-bool]
            raise ValueError("PostgresSessionRepository requires gateway")
        normalized_table = sessions_table.strip()
        if not normalized_table:
            raise ValueError("PostgresSessionRepository requires non-empty table name")
        self._gateway = gateway
        self._table = normalized_table

    def find(self, *, session_id: str) -> SessionRecord | None:
        query = f"""
        SELECT
            session_id,
            user_id,
            last_activity
        FROM {self._table}
        WHERE session_id = %(session_id)s
        """
        row = self._gateway.fetch_one(query=query, parameters={"session_id": session_id})
        if row is None:
            return None
        return _map_session_row(row=row)

    def touch(self, *, session_id: str, user_id: UserId, at: datetime) -> SessionRecord | None:
        """
        Upsert session row for its owner and refresh activity.

        Args:
            session_id: Session token.
            user_id: Expected owner.
            at: UTC activity timestamp.
        Returns:
            SessionRecord | None: Stored row, or `None` when owned by another user.
        Assumptions:
            The conflict branch only updates rows of the same owner.
        Raises:
            ValueError: If row mapping is malformed.
        Side Effects:
            Executes one SQL upsert statement.
        """
        query = f"""
        INSERT INTO {self._table}
        (
            session_id,
            user_id,
            last_activity
        )
        VALUES
        (
            %(session_id)s,
            %(user_id)s,
            %(at)s
        )
        ON CONFLICT (session_id)
        DO UPDATE
        SET last_activity = EXCLUDED.last_activity
        WHERE {self._table}.user_id = EXCLUDED.user_id
        RETURNING
            session_id,
            user_id,
            last_activity
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={"session_id": session_id, "user_id": user_id.value, "at": at},
        )
        if row is None:
            return None
        return _map_session_row(row=row)

    def invalidate_others(self, *, user_id: UserId, keep_session_id: str) -> tuple[str, ...]:
        query = f"""
        UPDATE {self._table}
        SET last_activity = NULL
        WHERE user_id = %(user_id)s
          AND session_id <> %(keep_session_id)s
        RETURNING session_id
        """
        rows = self._gateway.fetch_all(
            query=query,
            parameters={"user_id": user_id.value, "keep_session_id": keep_session_id},
        )
        return tuple(sorted(str(row["session_id"]) for row in rows))

    def delete_many(self, *, user_id: UserId, session_ids: tuple[str, ...]) -> int:
        if not session_ids:
            return 0
        query = f"""
        DELETE FROM {self._table}
        WHERE user_id = %(user_id)s
          AND session_id = ANY(%(session_ids)s)
        RETURNING session_id
        """
        rows = self._gateway.fetch_all(
            query=query,
            parameters={"user_id": user_id.value, "session_ids": list(session_ids)},
        )
        return len(rows)

    def delete(self, *, user_id: UserId, session_id: str) -> bool:
        return self.delete_many(user_id=user_id, session_ids=(session_id,)) == 1


def _map_session_row(*, row: Mapping[str, Any]) -> SessionRecord:
    try:
        return SessionRecord(
            session_id=str(row["session_id"]),
            user_id=UserId(int(row["user_id"])),
            last_activity=as_utc_or_none(row["last_activity"]),
        )
    except (KeyError, TypeError, ValueError) as error:
        raise ValueError("PostgresSessionRepository cannot map session row") from error
