from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from storefront.contexts.security.application.ports import VerificationRequestRepository
from storefront.contexts.security.domain.entities import VerificationRequest
from storefront.contexts.security.domain.value_objects import (
    VerificationState,
    VerificationType,
)
from storefront.shared_kernel.primitives import UserId

from .gateway import SecurityPostgresGateway
from .timestamps import as_utc, as_utc_or_none

_COLUMNS = """
            id,
            user_id,
            verification_type,
            target_value,
            code,
            created_at,
            expires_at,
            state,
            updated_at,
            failed_attempts,
            locked_until
"""

_SUPERSEDE_LOCK_NAMESPACE = 41874


class PostgresVerificationRequestRepository(VerificationRequestRepository):
    """
    PostgresVerificationRequestRepository — Postgres adapter for OTP verification requests.

    Terminal transitions and reissues are single conditional `UPDATE ... RETURNING`
    statements; an empty result means another writer changed the row first. Creating a request
    runs supersede and insert in one transaction under a per-(user, type) advisory lock.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/verification_request_repository.py
      - src/storefront/contexts/security/adapters/outbound/persistence/postgres/gateway.py
      - alembic/versions/20261017_0001_security_v1.py
    """

    def __init__(
        self,
        *,
        gateway: SecurityPostgresGateway,
        requests_table: str = "verification_requests",
    ) -> None:
        """
        Initialize repository with SQL gateway and target table name.

        Args:
            gateway: SQL gateway abstraction.
            requests_table: Target table name.
        Returns:
            None.
        Assumptions:
            Table schema follows migration `20261017_0001_security_v1`.
        Raises:
            ValueError: If dependencies are invalid.
        Side Effects:
            None.
        """
        if gateway is None:  # type: ignore[truthy-bool]
            raise ValueError("PostgresVerificationRequestRepository requires gateway")
        normalized_table = requests_table.strip()
        if not normalized_table:
            raise ValueError("PostgresVerificationRequestRepository requires non-empty table name")
        self._gateway = gateway
        self._table = normalized_table

    def supersede_and_insert(
        self,
        *,
        user_id: UserId,
        verification_type: VerificationType,
        target_value: str,
        code: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> tuple[VerificationRequest, int]:
        """
        Cancel pending rows of (user, type) and insert a new pending row in one transaction.

        Args:
            user_id: Owner of the request.
            verification_type: Targeted attribute tag.
            target_value: Normalized proposed value.
            code: Six-digit code text.
            created_at: UTC creation and cancellation timestamp.
            expires_at: UTC expiry timestamp.
        Returns:
            tuple[VerificationRequest, int]: Inserted snapshot and superseded row count.
        Assumptions:
            `pg_advisory_xact_lock` serializes creators of one (user, type) until commit, so the
            second creator's UPDATE sees and cancels the first creator's row. The unique partial
            index `uq_verification_requests_owner_pending` backs this up.
        Raises:
            ValueError: If INSERT returned no row or row mapping is malformed.
        Side Effects:
            Executes three SQL statements in one transaction.
        """
        parameters = {
            "namespace": _SUPERSEDE_LOCK_NAMESPACE,
            "owner_key": f"{user_id.value}:{verification_type.value}",
            "user_id": user_id.value,
            "verification_type": verification_type.value,
            "target_value": target_value,
            "code": code,
            "created_at": created_at,
            "expires_at": expires_at,
            "pending_state": VerificationState.PENDING.value,
            "cancelled_state": VerificationState.CANCELLED.value,
        }
        lock_query = "SELECT pg_advisory_xact_lock(%(namespace)s, hashtext(%(owner_key)s))"
        supersede_query = f"""
        UPDATE {self._table}
        SET
            state = %(cancelled_state)s,
            updated_at = %(created_at)s
        WHERE user_id = %(user_id)s
          AND verification_type = %(verification_type)s
          AND state = %(pending_state)s
        RETURNING id
        """
        insert_query = f"""
        INSERT INTO {self._table}
        (
            user_id,
            verification_type,
            target_value,
            code,
            created_at,
            expires_at,
            state,
            updated_at,
            failed_attempts,
            locked_until
        )
        VALUES
        (
            %(user_id)s,
            %(verification_type)s,
            %(target_value)s,
            %(code)s,
            %(created_at)s,
            %(expires_at)s,
            %(pending_state)s,
            %(created_at)s,
            0,
            NULL
        )
        RETURNING
        {_COLUMNS}
        """
        _, superseded_rows, inserted_rows = self._gateway.fetch_all_in_transaction(
            statements=(
                (lock_query, parameters),
                (supersede_query, parameters),
                (insert_query, parameters),
            )
        )
        if not inserted_rows:
            raise ValueError("PostgresVerificationRequestRepository insert returned no row")
        return _map_request_row(row=inserted_rows[0]), len(superseded_rows)

    def find_by_id_and_owner(
        self,
        *,
        request_id: int,
        user_id: UserId,
    ) -> VerificationRequest | None:
        query = f"""
        SELECT
        {_COLUMNS}
        FROM {self._table}
        WHERE id = %(id)s
          AND user_id = %(user_id)s
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={"id": request_id, "user_id": user_id.value},
        )
        if row is None:
            return None
        return _map_request_row(row=row)

    def find_pending(
        self,
        *,
        user_id: UserId,
        verification_type: VerificationType,
        now: datetime,
    ) -> VerificationRequest | None:
        query = f"""
        SELECT
        {_COLUMNS}
        FROM {self._table}
        WHERE user_id = %(user_id)s
          AND verification_type = %(verification_type)s
          AND state = %(state)s
          AND expires_at > %(now)s
        ORDER BY id DESC
        LIMIT 1
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={
                "user_id": user_id.value,
                "verification_type": verification_type.value,
                "state": VerificationState.PENDING.value,
                "now": now,
            },
        )
        if row is None:
            return None
        return _map_request_row(row=row)

    def compare_and_set(
        self,
        *,
        expected: VerificationRequest,
        replacement: VerificationRequest,
    ) -> bool:
        """
        Apply replacement through one conditional UPDATE guarded by the expected snapshot.

        Args:
            expected: Snapshot read by caller.
            replacement: Snapshot to store.
        Returns:
            bool: True when the UPDATE matched the row.
        Assumptions:
            Reissue changes code and expiry and every wrong attempt bumps `failed_attempts`,
            so a stale reissue, verify or attempt record never matches.
        Raises:
            ValueError: If snapshots refer to different rows.
        Side Effects:
            Executes one SQL UPDATE statement.
        """
        if expected.request_id != replacement.request_id or expected.user_id != replacement.user_id:
            raise ValueError("compare_and_set requires snapshots of the same request")
        query = f"""
        UPDATE {self._table}
        SET
            state = %(new_state)s,
            code = %(new_code)s,
            expires_at = %(new_expires_at)s,
            failed_attempts = %(new_failed_attempts)s,
            locked_until = %(new_locked_until)s,
            updated_at = %(updated_at)s
        WHERE id = %(id)s
          AND user_id = %(user_id)s
          AND state = %(expected_state)s
          AND code = %(expected_code)s
          AND expires_at = %(expected_expires_at)s
          AND failed_attempts = %(expected_failed_attempts)s
        RETURNING id
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={
                "id": expected.request_id,
                "user_id": expected.user_id.value,
                "expected_state": expected.state.value,
                "expected_code": expected.code,
                "expected_expires_at": expected.expires_at,
                "expected_failed_attempts": expected.failed_attempts,
                "new_state": replacement.state.value,
                "new_code": replacement.code,
                "new_expires_at": replacement.expires_at,
                "new_failed_attempts": replacement.failed_attempts,
                "new_locked_until": replacement.locked_until,
                "updated_at": replacement.updated_at,
            },
        )
        return row is not None


def _map_request_row(*, row: Mapping[str, Any]) -> VerificationRequest:
    """
    Map SQL row mapping into immutable domain `VerificationRequest`.

    Args:
        row: SQL result mapping.
    Returns:
        VerificationRequest: Domain snapshot.
    Assumptions:
        Row follows schema of `verification_requests` table.
    Raises:
        ValueError: If required fields are missing or malformed.
    Side Effects:
        None.
    """
    try:
        return VerificationRequest(
            request_id=int(row["id"]),
            user_id=UserId(int(row["user_id"])),
            verification_type=VerificationType(str(row["verification_type"])),
            target_value=str(row["target_value"]),
            code=str(row["code"]),
            created_at=as_utc(row["created_at"]),
            expires_at=as_utc(row["expires_at"]),
            state=VerificationState(str(row["state"])),
            updated_at=as_utc(row["updated_at"]),
            failed_attempts=int(row["failed_attempts"]),
            locked_until=as_utc_or_none(row["locked_until"]),
        )
    except (KeyError, TypeError, ValueError) as error:
        raise ValueError(
            "PostgresVerificationRequestRepository cannot map verification request row"
        ) from error
