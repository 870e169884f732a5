from __future__ import annotations

import threading
from datetime import datetime

from storefront.contexts.security.application.ports import SessionRepository
from storefront.contexts.security.domain.entities import SessionRecord
from storefront.shared_kernel.primitives import UserId


class InMemorySessionRepository(SessionRepository):
    """
    InMemorySessionRepository — process-local session rows keyed by session id.

    Related:
      - src/storefront/contexts/security/application/ports/session_repository.py
      - src/storefront/contexts/security/adapters/outbound/persistence/postgres/
        session_repository.py
      - tests/unit/contexts/security/application/test_session_guard.py
    """

    def __init__(self) -> None:
        self._rows: dict[str, SessionRecord] = {}
        self._mutex = threading.Lock()

    def find(self, *, session_id: str) -> SessionRecord | None:
        with self._mutex:
            return self._rows.get(session_id)

    def touch(self, *, session_id: str, user_id: UserId, at: datetime) -> SessionRecord | None:
        with self._mutex:
            existing = self._rows.get(session_id)
            if existing is not None and existing.user_id != user_id:
                return None
            row = SessionRecord(session_id=session_id, user_id=user_id, last_activity=at)
            self._rows[session_id] = row
            return row

    def invalidate_others(self, *, user_id: UserId, keep_session_id: str) -> tuple[str, ...]:
        with self._mutex:
            invalidated: list[str] = []
            for session_id, row in list(self._rows.items()):
                if row.user_id != user_id or session_id == keep_session_id:
                    continue
                self._rows[session_id] = SessionRecord(
                    session_id=session_id,
                    user_id=user_id,
                    last_activity=None,
                )
                invalidated.append(session_id)
            return tuple(sorted(invalidated))

    def delete_many(self, *, user_id: UserId, session_ids: tuple[str, ...]) -> int:
        with self._mutex:
            deleted = 0
            for session_id in session_ids:
                row = self._rows.get(session_id)
                if row is None or row.user_id != user_id:
                    continue
                del self._rows[session_id]
                deleted += 1
            return deleted

    def delete(self, *, user_id: UserId, session_id: str) -> bool:
        return self.delete_many(user_id=user_id, session_ids=(session_id,)) == 1

    def list_for_user(self, *, user_id: UserId) -> tuple[SessionRecord, ...]:
        """
        Return rows of `user_id` sorted by session id.
        """
        with self._mutex:
            rows = [row for row in self._rows.values() if row.user_id == user_id]
        return tuple(sorted(rows, key=lambda item: item.session_id))
