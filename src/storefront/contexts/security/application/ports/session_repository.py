from __future__ import annotations

from datetime import datetime
from typing import Protocol

from storefront.contexts.security.domain.entities import SessionRecord
from storefront.shared_kernel.primitives import UserId


class SessionRepository(Protocol):
    """
    SessionRepository — порт хранения строк аутентифицированных сессий.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/domain/entities/session_record.py
      - src/storefront/contexts/security/application/use_cases/session_guard.py
      - src/storefront/contexts/security/adapters/outbound/persistence/postgres/
        session_repository.py
    """

    def find(self, *, session_id: str) -> SessionRecord | None:
        """
        Read one session row.

        Returns:
            SessionRecord | None: Snapshot or `None` when missing.
        """
        ...

    def touch(self, *, session_id: str, user_id: UserId, at: datetime) -> SessionRecord | None:
        """
        Create the row for `user_id` or refresh its activity timestamp.

        Args:
            session_id: Session token.
            user_id: Expected owner.
            at: UTC activity timestamp.
        Returns:
            SessionRecord | None: Stored snapshot, or `None` when the id belongs to another user.
        Assumptions:
            Touching an invalidated row of the same owner revives it.
        Raises:
            None.
        Side Effects:
            Writes one storage record.
        """
        ...

    def invalidate_others(self, *, user_id: UserId, keep_session_id: str) -> tuple[str, ...]:
        """
        Mark every other row of `user_id` invalidated.

        Args:
            user_id: Owner.
            keep_session_id: Row left untouched.
        Returns:
            tuple[str, ...]: Sorted ids of invalidated rows.
        Assumptions:
            Invalidated rows are deleted by the caller after the settling delay.
        Raises:
            None.
        Side Effects:
            Writes storage records.
        """
        ...

    def delete_many(self, *, user_id: UserId, session_ids: tuple[str, ...]) -> int:
        """
        Delete rows of `user_id` whose ids are listed.

        Returns:
            int: Number of deleted rows.
        """
        ...

    def delete(self, *, user_id: UserId, session_id: str) -> bool:
        """
        Delete one row owned by `user_id`.

        Returns:
            bool: True when a row was deleted.
        """
        ...
