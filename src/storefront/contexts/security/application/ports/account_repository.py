from __future__ import annotations

from datetime import datetime
from typing import Protocol

from storefront.contexts.security.domain.entities import Account
from storefront.contexts.security.domain.value_objects import VerificationType
from storefront.shared_kernel.primitives import UserId


class AccountRepository(Protocol):
    """
    AccountRepository — порт чтения/записи атрибутов аккаунта для security flows.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/domain/entities/account.py
      - src/storefront/contexts/security/adapters/outbound/persistence/postgres/
        account_repository.py
      - src/storefront/contexts/security/adapters/outbound/persistence/in_memory/
        account_repository.py
    """

    def find_by_user_id(self, *, user_id: UserId) -> Account | None:
        """
        Find account by user id.

        Args:
            user_id: User identifier.
        Returns:
            Account | None: Snapshot or `None` when missing.
        Assumptions:
            Lookup is unique by `user_id`.
        Raises:
            ValueError: If row mapping is malformed.
        Side Effects:
            Reads one storage record.
        """
        ...

    def is_held_by_other(
        self,
        *,
        verification_type: VerificationType,
        values: tuple[str, ...],
        excluding_user_id: UserId,
    ) -> bool:
        """
        Check whether any other account stores one of `values` for the attribute.

        Args:
            verification_type: Attribute tag selecting the column.
            values: Stored-form variants of one candidate value.
            excluding_user_id: Account allowed to hold the value.
        Returns:
            bool: True when another account already holds the value.
        Assumptions:
            Email comparison is case-insensitive.
        Raises:
            None.
        Side Effects:
            Reads storage.
        """
        ...

    def apply_verified_attribute(
        self,
        *,
        user_id: UserId,
        verification_type: VerificationType,
        value: str,
        verified_at: datetime,
    ) -> Account:
        """
        Write a verified attribute value to the account.

        Args:
            user_id: Account owner.
            verification_type: Attribute tag selecting the column.
            value: Stored-form value.
            verified_at: UTC timestamp recorded as email verification time for emails.
        Returns:
            Account: Updated snapshot.
        Assumptions:
            Called once per consumed verification request.
        Raises:
            ValueError: If account does not exist.
        Side Effects:
            Writes one storage record.
        """
        ...

    def set_current_session(self, *, user_id: UserId, session_id: str) -> None:
        """
        Point `current_session_id` at `session_id` unconditionally.

        Raises:
            ValueError: If account does not exist.
        """
        ...

    def clear_current_session(self, *, user_id: UserId, expected_session_id: str) -> bool:
        """
        Clear `current_session_id` only if it still equals `expected_session_id`.

        Returns:
            bool: True when the pointer was cleared.
        """
        ...
