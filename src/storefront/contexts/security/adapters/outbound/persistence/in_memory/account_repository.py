from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime

from storefront.contexts.security.application.ports import AccountRepository
from storefront.contexts.security.domain.entities import Account
from storefront.contexts.security.domain.value_objects import VerificationType
from storefront.shared_kernel.primitives import UserId


class InMemoryAccountRepository(AccountRepository):
    """
    InMemoryAccountRepository — process-local account slice storage for dev and tests.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/account_repository.py
      - src/storefront/contexts/security/adapters/outbound/persistence/postgres/
        account_repository.py
    """

    def __init__(self, *, accounts: tuple[Account, ...] = ()) -> None:
        self._rows: dict[int, Account] = {account.user_id.value: account for account in accounts}
        self._mutex = threading.Lock()

    def add(self, *, account: Account) -> None:
        """
        Seed or replace one account row.

        Args:
            account: Account snapshot.
        Returns:
            None.
        Assumptions:
            Used by dev wiring and tests; production accounts come from the user store.
        Raises:
            None.
        Side Effects:
            Mutates in-memory rows map.
        """
        with self._mutex:
            self._rows[account.user_id.value] = account

    def find_by_user_id(self, *, user_id: UserId) -> Account | None:
        with self._mutex:
            return self._rows.get(user_id.value)

    def is_held_by_other(
        self,
        *,
        verification_type: VerificationType,
        values: tuple[str, ...],
        excluding_user_id: UserId,
    ) -> bool:
        candidates = {_comparable(verification_type=verification_type, value=v) for v in values}
        with self._mutex:
            for account in self._rows.values():
                if account.user_id == excluding_user_id:
                    continue
                stored = _attribute(account=account, verification_type=verification_type)
                if stored is None:
                    continue
                if _comparable(verification_type=verification_type, value=stored) in candidates:
                    return True
        return False

    def apply_verified_attribute(
        self,
        *,
        user_id: UserId,
        verification_type: VerificationType,
        value: str,
        verified_at: datetime,
    ) -> Account:
        with self._mutex:
            account = self._require(user_id=user_id)
            if verification_type is VerificationType.EMAIL:
                updated = replace(account, email=value, email_verified_at=verified_at)
            else:
                updated = replace(account, phone=value)
            self._rows[user_id.value] = updated
            return updated

    def set_current_session(self, *, user_id: UserId, session_id: str) -> None:
        with self._mutex:
            account = self._require(user_id=user_id)
            self._rows[user_id.value] = replace(account, current_session_id=session_id)

    def clear_current_session(self, *, user_id: UserId, expected_session_id: str) -> bool:
        with self._mutex:
            account = self._rows.get(user_id.value)
            if account is None or account.current_session_id != expected_session_id:
                return False
            self._rows[user_id.value] = replace(account, current_session_id=None)
            return True

    def _require(self, *, user_id: UserId) -> Account:
        account = self._rows.get(user_id.value)
        if account is None:
            raise ValueError(f"account {user_id} does not exist")
        return account


def _attribute(*, account: Account, verification_type: VerificationType) -> str | None:
    if verification_type is VerificationType.EMAIL:
        return account.email
    return account.phone


def _comparable(*, verification_type: VerificationType, value: str) -> str:
    normalized = value.strip()
    if verification_type is VerificationType.EMAIL:
        return normalized.lower()
    return normalized
