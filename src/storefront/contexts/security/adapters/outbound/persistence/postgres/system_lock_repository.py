from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from storefront.contexts.security.application.ports import SystemLockRepository
from storefront.contexts.security.domain.entities import SystemLock
from storefront.contexts.security.domain.value_objects import LockStatus
from storefront.shared_kernel.primitives import UserId

from .gateway import SecurityPostgresGateway
from .timestamps import as_utc, as_utc_or_none

_LOCK_COLUMNS = """
            lock_key,
            status,
            lock_time,
            updated_by,
            updated_at
"""


class PostgresSystemLockRepository(SystemLockRepository):
    """
    PostgresSystemLockRepository — Postgres adapter for storefront lock rows.

    `lock_key` is the primary key, so `ensure` is an idempotent `INSERT ... ON CONFLICT DO
    NOTHING` followed by a read.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/system_lock_repository.py
      - src/storefront/contexts/security/application/use_cases/system_lock_manager.py
      - alembic/versions/20261017_0001_security_v1.py
    """

    def __init__(
        self,
        *,
        gateway: SecurityPostgresGateway,
        locks_table: str = "system_locks",
    ) -> None:
        if gateway is None:  # type: ignore[truthy-bool]
            raise ValueError("PostgresSystemLockRepository requires gateway")
        normalized_table = locks_table.strip()
        if not normalized_table:
            raise ValueError("PostgresSystemLockRepository requires non-empty table name")
        self._gateway = gateway
        self._table = normalized_table

    def ensure(self, *, lock_key: str, at: datetime) -> SystemLock:
        """
        Insert `open` row when absent and return stored row.

        Args:
            lock_key: Lock key.
            at: UTC timestamp for a freshly inserted row.
        Returns:
            SystemLock: Stored snapshot.
        Assumptions:
            Concurrent provisioning converges on the first inserted row.
        Raises:
            ValueError: If row cannot be read back.
        Side Effects:
            Executes one SQL INSERT and optional SELECT.
        """
        query = f"""
        INSERT INTO {self._table}
        (
            lock_key,
            status,
            lock_time,
            updated_by,
            updated_at
        )
        VALUES
        (
            %(lock_key)s,
            %(status)s,
            NULL,
            NULL,
            %(updated_at)s
        )
        ON CONFLICT (lock_key) DO NOTHING
        RETURNING
        {_LOCK_COLUMNS}
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={
                "lock_key": lock_key,
                "status": LockStatus.OPEN.value,
                "updated_at": at,
            },
        )
        if row is not None:
            return _map_lock_row(row=row)
        existing = self.get(lock_key=lock_key)
        if existing is None:
            raise ValueError(f"PostgresSystemLockRepository cannot provision lock {lock_key!r}")
        return existing

    def get(self, *, lock_key: str) -> SystemLock | None:
        query = f"""
        SELECT
        {_LOCK_COLUMNS}
        FROM {self._table}
        WHERE lock_key = %(lock_key)s
        """
        row = self._gateway.fetch_one(query=query, parameters={"lock_key": lock_key})
        if row is None:
            return None
        return _map_lock_row(row=row)

    def compare_and_set(self, *, expected: SystemLock, replacement: SystemLock) -> bool:
        if expected.lock_key != replacement.lock_key:
            raise ValueError("compare_and_set requires snapshots of the same lock key")
        query = f"""
        UPDATE {self._table}
        SET
            status = %(new_status)s,
            lock_time = %(new_lock_time)s,
            updated_by = %(updated_by)s,
            updated_at = %(updated_at)s
        WHERE lock_key = %(lock_key)s
          AND status = %(expected_status)s
          AND lock_time IS NOT DISTINCT FROM %(expected_lock_time)s
        RETURNING lock_key
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={
                "lock_key": expected.lock_key,
                "expected_status": expected.status.value,
                "expected_lock_time": expected.lock_time,
                "new_status": replacement.status.value,
                "new_lock_time": replacement.lock_time,
                "updated_by": _user_value(replacement.updated_by),
                "updated_at": replacement.updated_at,
            },
        )
        return row is not None

    def put(self, *, lock: SystemLock) -> SystemLock:
        query = f"""
        INSERT INTO {self._table}
        (
            lock_key,
            status,
            lock_time,
            updated_by,
            updated_at
        )
        VALUES
        (
            %(lock_key)s,
            %(status)s,
            %(lock_time)s,
            %(updated_by)s,
            %(updated_at)s
        )
        ON CONFLICT (lock_key)
        DO UPDATE
        SET
            status = EXCLUDED.status,
            lock_time = EXCLUDED.lock_time,
            updated_by = EXCLUDED.updated_by,
            updated_at = EXCLUDED.updated_at
        RETURNING
        {_LOCK_COLUMNS}
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={
                "lock_key": lock.lock_key,
                "status": lock.status.value,
                "lock_time": lock.lock_time,
                "updated_by": _user_value(lock.updated_by),
                "updated_at": lock.updated_at,
            },
        )
        if row is None:
            raise ValueError("PostgresSystemLockRepository upsert returned no row")
        return _map_lock_row(row=row)


def _user_value(user_id: UserId | None) -> int | None:
    if user_id is None:
        return None
    return user_id.value


def _map_lock_row(*, row: Mapping[str, Any]) -> SystemLock:
    try:
        updated_by_raw = row["updated_by"]
        return SystemLock(
            lock_key=str(row["lock_key"]),
            status=LockStatus(str(row["status"])),
            lock_time=as_utc_or_none(row["lock_time"]),
            updated_by=UserId(int(updated_by_raw)) if updated_by_raw is not None else None,
            updated_at=as_utc(row["updated_at"]),
        )
    except (KeyError, TypeError, ValueError) as error:
        raise ValueError("PostgresSystemLockRepository cannot map lock row") from error
