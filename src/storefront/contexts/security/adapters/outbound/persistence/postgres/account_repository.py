from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from storefront.contexts.security.application.ports import AccountRepository
from storefront.contexts.security.domain.entities import Account
from storefront.contexts.security.domain.value_objects import AccountRole, VerificationType
from storefront.shared_kernel.primitives import UserId

from .gateway import SecurityPostgresGateway
from .timestamps import as_utc_or_none

_ACCOUNT_COLUMNS = """
            id,
            role,
            email,
            email_verified_at,
            phone,
            current_session_id
"""


class PostgresAccountRepository(AccountRepository):
    """
    PostgresAccountRepository — Postgres adapter over the marketplace `users` table slice.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/account_repository.py
      - src/storefront/contexts/security/adapters/outbound/persistence/postgres/gateway.py
      - alembic/versions/20261017_0001_security_v1.py
    """

    def __init__(self, *, gateway: SecurityPostgresGateway, users_table: str = "users") -> None:
        """
        Initialize repository with SQL gateway and users table name.

        Args:
            gateway: SQL gateway abstraction.
            users_table: Target users table name.
        Returns:
            None.
        Assumptions:
            Table has `email`, `phone`, `email_verified_at` and `current_session_id` columns.
        Raises:
            ValueError: If dependencies are invalid.
        Side Effects:
            None.
        """
        if gateway is None:  # type: ignore[truthy-bool]
            raise ValueError("PostgresAccountRepository requires gateway")
        normalized_table = users_table.strip()
        if not normalized_table:
            raise ValueError("PostgresAccountRepository requires non-empty table name")
        self._gateway = gateway
        self._table = normalized_table

    def find_by_user_id(self, *, user_id: UserId) -> Account | None:
        query = f"""
        SELECT
        {_ACCOUNT_COLUMNS}
        FROM {self._table}
        WHERE id = %(user_id)s
        """
        row = self._gateway.fetch_one(query=query, parameters={"user_id": user_id.value})
        if row is None:
            return None
        return _map_account_row(row=row)

    def is_held_by_other(
        self,
        *,
        verification_type: VerificationType,
        values: tuple[str, ...],
        excluding_user_id: UserId,
    ) -> bool:
        """
        Check uniqueness of attribute value across other accounts.

        Args:
            verification_type: Attribute tag selecting the column.
            values: Stored-form variants of one value.
            excluding_user_id: Account allowed to hold the value.
        Returns:
            bool: True when another row matches.
        Assumptions:
            Email column is compared through `lower()`.
        Raises:
            None.
        Side Effects:
            Executes one SQL SELECT statement.
        """
        if verification_type is VerificationType.EMAIL:
            predicate = "lower(email) = ANY(%(values)s)"
            candidates = [value.strip().lower() for value in values]
        else:
            predicate = "phone = ANY(%(values)s)"
            candidates = [value.strip() for value in values]
        query = f"""
        SELECT 1 AS held
        FROM {self._table}
        WHERE {predicate}
          AND id <> %(user_id)s
        LIMIT 1
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={"values": candidates, "user_id": excluding_user_id.value},
        )
        return row is not None

    def apply_verified_attribute(
        self,
        *,
        user_id: UserId,
        verification_type: VerificationType,
        value: str,
        verified_at: datetime,
    ) -> Account:
        if verification_type is VerificationType.EMAIL:
            assignments = "email = %(value)s, email_verified_at = %(verified_at)s"
        else:
            assignments = "phone = %(value)s"
        query = f"""
        UPDATE {self._table}
        SET {assignments}
        WHERE id = %(user_id)s
        RETURNING
        {_ACCOUNT_COLUMNS}
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={"user_id": user_id.value, "value": value, "verified_at": verified_at},
        )
        if row is None:
            raise ValueError(f"PostgresAccountRepository cannot update missing account {user_id}")
        return _map_account_row(row=row)

    def set_current_session(self, *, user_id: UserId, session_id: str) -> None:
        query = f"""
        UPDATE {self._table}
        SET current_session_id = %(session_id)s
        WHERE id = %(user_id)s
        RETURNING id
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={"user_id": user_id.value, "session_id": session_id},
        )
        if row is None:
            raise ValueError(f"PostgresAccountRepository cannot update missing account {user_id}")

    def clear_current_session(self, *, user_id: UserId, expected_session_id: str) -> bool:
        query = f"""
        UPDATE {self._table}
        SET current_session_id = NULL
        WHERE id = %(user_id)s
          AND current_session_id = %(session_id)s
        RETURNING id
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={"user_id": user_id.value, "session_id": expected_session_id},
        )
        return row is not None


def _map_account_row(*, row: Mapping[str, Any]) -> Account:
    try:
        return Account(
            user_id=UserId(int(row["id"])),
            role=AccountRole(str(row["role"])),
            email=_optional_text(row["email"]),
            email_verified_at=as_utc_or_none(row["email_verified_at"]),
            phone=_optional_text(row["phone"]),
            current_session_id=_optional_text(row["current_session_id"]),
        )
    except (KeyError, TypeError, ValueError) as error:
        raise ValueError("PostgresAccountRepository cannot map account row") from error


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)
