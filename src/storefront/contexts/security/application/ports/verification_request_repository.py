from __future__ import annotations

from datetime import datetime
from typing import Protocol

from storefront.contexts.security.domain.entities import VerificationRequest
from storefront.contexts.security.domain.value_objects import VerificationType
from storefront.shared_kernel.primitives import UserId


class VerificationRequestRepository(Protocol):
    """
    VerificationRequestRepository — порт хранения OTP запросов на смену атрибута аккаунта.

    Rows are never deleted; terminal transitions are conditional updates so that concurrent
    verify/resend/cancel calls on one request resolve to exactly one winner.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/domain/entities/verification_request.py
      - src/storefront/contexts/security/adapters/outbound/persistence/in_memory/
        verification_request_repository.py
      - src/storefront/contexts/security/adapters/outbound/persistence/postgres/
        verification_request_repository.py
    """

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
        Cancel every pending request of (user, type) and persist a new pending one, atomically.

        Args:
            user_id: Owner of the request.
            verification_type: Targeted attribute tag.
            target_value: Normalized proposed value.
            code: Six-digit code text.
            created_at: UTC creation timestamp; also the cancellation timestamp.
            expires_at: UTC expiry timestamp.
        Returns:
            tuple[VerificationRequest, int]: Stored pending snapshot and number of superseded
                requests.
        Assumptions:
            Concurrent calls for one (user, type) serialize, so exactly one pending row remains.
            Expired pending rows are cancelled too, for audit clarity.
        Raises:
            ValueError: If adapter cannot persist or map the resulting row.
        Side Effects:
            Conditionally updates existing records and writes one new record.
        """
        ...

    def find_by_id_and_owner(
        self,
        *,
        request_id: int,
        user_id: UserId,
    ) -> VerificationRequest | None:
        """
        Find request by id restricted to its owner.

        Args:
            request_id: Request identifier.
            user_id: Expected owner.
        Returns:
            VerificationRequest | None: Snapshot, or `None` when missing or owned by someone else.
        Assumptions:
            Foreign and missing rows are indistinguishable to callers.
        Raises:
            ValueError: If row mapping is malformed.
        Side Effects:
            Reads one storage record.
        """
        ...

    def find_pending(
        self,
        *,
        user_id: UserId,
        verification_type: VerificationType,
        now: datetime,
    ) -> VerificationRequest | None:
        """
        Find newest pending, non-expired request for (user, type).

        Args:
            user_id: Owner.
            verification_type: Targeted attribute tag.
            now: UTC timestamp used for the expiry comparison.
        Returns:
            VerificationRequest | None: Live request or `None`.
        Assumptions:
            Superseding keeps at most one live request per pair.
        Raises:
            ValueError: If row mapping is malformed.
        Side Effects:
            Reads storage.
        """
        ...

    def compare_and_set(
        self,
        *,
        expected: VerificationRequest,
        replacement: VerificationRequest,
    ) -> bool:
        """
        Replace stored row only if it still equals `expected` in state, code, expiry and attempts.

        Args:
            expected: Snapshot previously read by the caller.
            replacement: New snapshot with the same id and owner.
        Returns:
            bool: True when the update applied, False when another writer won.
        Assumptions:
            `expected.request_id == replacement.request_id`.
        Raises:
            ValueError: If snapshots refer to different rows.
        Side Effects:
            Conditionally writes one storage record.
        """
        ...
