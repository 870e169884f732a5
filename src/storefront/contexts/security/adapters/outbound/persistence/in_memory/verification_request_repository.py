from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime

from storefront.contexts.security.application.ports import VerificationRequestRepository
from storefront.contexts.security.domain.entities import VerificationRequest
from storefront.contexts.security.domain.value_objects import (
    VerificationState,
    VerificationType,
)
from storefront.shared_kernel.primitives import UserId


class InMemoryVerificationRequestRepository(VerificationRequestRepository):
    """
    InMemoryVerificationRequestRepository — process-local verification request storage.

    A single mutex makes compare-and-set and supersede-then-insert atomic within the process,
    matching the conditional update and transaction semantics of the Postgres adapter.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/verification_request_repository.py
      - src/storefront/contexts/security/adapters/outbound/persistence/postgres/
        verification_request_repository.py
      - tests/unit/contexts/security/application/test_verification_request_manager.py
    """

    def __init__(self) -> None:
        """
        Initialize empty rows map and id sequence.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Repository instance is process-local and deterministic for tests.
        Raises:
            None.
        Side Effects:
            None.
        """
        self._rows: dict[int, VerificationRequest] = {}
        self._next_id = 1
        self._mutex = threading.Lock()

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
        with self._mutex:
            superseded = 0
            for request_id, row in list(self._rows.items()):
                if row.user_id != user_id or row.verification_type is not verification_type:
                    continue
                if row.state is not VerificationState.PENDING:
                    continue
                self._rows[request_id] = replace(
                    row,
                    state=VerificationState.CANCELLED,
                    updated_at=created_at,
                )
                superseded += 1

            inserted = VerificationRequest(
                request_id=self._next_id,
                user_id=user_id,
                verification_type=verification_type,
                target_value=target_value,
                code=code,
                created_at=created_at,
                expires_at=expires_at,
                state=VerificationState.PENDING,
                updated_at=created_at,
            )
            self._rows[inserted.request_id] = inserted
            self._next_id += 1
            return inserted, superseded

    def find_by_id_and_owner(
        self,
        *,
        request_id: int,
        user_id: UserId,
    ) -> VerificationRequest | None:
        with self._mutex:
            row = self._rows.get(request_id)
        if row is None or row.user_id != user_id:
            return None
        return row

    def find_pending(
        self,
        *,
        user_id: UserId,
        verification_type: VerificationType,
        now: datetime,
    ) -> VerificationRequest | None:
        with self._mutex:
            rows = [
                row
                for row in self._rows.values()
                if row.user_id == user_id
                and row.verification_type is verification_type
                and row.is_live(now=now)
            ]
        if not rows:
            return None
        return max(rows, key=lambda item: item.request_id)

    def list_pending(
        self,
        *,
        user_id: UserId,
        verification_type: VerificationType,
    ) -> tuple[VerificationRequest, ...]:
        """
        Return every stored `pending` row of (user, type), expired ones included.
        """
        with self._mutex:
            return tuple(
                row
                for row in sorted(self._rows.values(), key=lambda item: item.request_id)
                if row.user_id == user_id
                and row.verification_type is verification_type
                and row.state is VerificationState.PENDING
            )

    def compare_and_set(
        self,
        *,
        expected: VerificationRequest,
        replacement: VerificationRequest,
    ) -> bool:
        """
        Swap row when stored state, code, expiry and attempt counter still equal `expected`.

        Args:
            expected: Snapshot read by caller.
            replacement: Snapshot to store.
        Returns:
            bool: True when swapped.
        Assumptions:
            Snapshots compare by value.
        Raises:
            ValueError: If snapshots refer to different rows.
        Side Effects:
            Mutates one in-memory row.
        """
        if expected.request_id != replacement.request_id or expected.user_id != replacement.user_id:
            raise ValueError("compare_and_set requires snapshots of the same request")
        with self._mutex:
            stored = self._rows.get(expected.request_id)
            if stored is None or stored.user_id != expected.user_id:
                return False
            if (
                stored.state is not expected.state
                or stored.code != expected.code
                or stored.expires_at != expected.expires_at
                or stored.failed_attempts != expected.failed_attempts
            ):
                return False
            self._rows[expected.request_id] = replacement
            return True
