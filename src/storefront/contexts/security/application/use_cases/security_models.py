from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from storefront.contexts.security.domain.entities import SystemLock, VerificationRequest
from storefront.contexts.security.domain.value_objects import (
    LockStatus,
    VerificationState,
    VerificationType,
)
from storefront.shared_kernel.primitives import UserId


@dataclass(frozen=True, slots=True)
class VerificationRequestView:
    """
    VerificationRequestView — caller-facing projection of a request without its code.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/domain/entities/verification_request.py
      - src/storefront/contexts/security/adapters/inbound/api/routes/verification_requests.py
    """

    request_id: int
    verification_type: VerificationType
    target_value: str
    created_at: datetime
    expires_at: datetime
    state: VerificationState

    @classmethod
    def from_request(cls, request: VerificationRequest) -> VerificationRequestView:
        return cls(
            request_id=request.request_id,
            verification_type=request.verification_type,
            target_value=request.target_value,
            created_at=request.created_at,
            expires_at=request.expires_at,
            state=request.state,
        )


@dataclass(frozen=True, slots=True)
class PendingVerificationView:
    """
    PendingVerificationView — live pending request for (user, type), if any.
    """

    verification_type: VerificationType
    request: VerificationRequestView | None


@dataclass(frozen=True, slots=True)
class VerificationOutcome:
    """
    VerificationOutcome — result of a successful verify: the attribute value now applied.
    """

    request_id: int
    verification_type: VerificationType
    applied_value: str
    verified_at: datetime


@dataclass(frozen=True, slots=True)
class LockStatusView:
    """
    LockStatusView — observed storefront lock status with countdown.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/use_cases/system_lock_manager.py
      - src/storefront/contexts/security/adapters/inbound/api/routes/system_lock.py
    """

    lock_key: str
    status: LockStatus
    lock_time: datetime | None
    remaining_seconds: int | None
    updated_by: UserId | None
    updated_at: datetime

    @classmethod
    def from_lock(cls, lock: SystemLock, *, now: datetime) -> LockStatusView:
        return cls(
            lock_key=lock.lock_key,
            status=lock.status,
            lock_time=lock.lock_time,
            remaining_seconds=lock.remaining_seconds(now=now),
            updated_by=lock.updated_by,
            updated_at=lock.updated_at,
        )


@dataclass(frozen=True, slots=True)
class StorefrontAccess:
    allowed: bool
    status: LockStatus


@dataclass(frozen=True, slots=True)
class SessionConflict:
    user_id: UserId
    session_id: str
    has_conflict: bool


@dataclass(frozen=True, slots=True)
class SessionAdoption:
    """
    SessionAdoption — session that became current and the ids evicted to make room for it.
    """

    user_id: UserId
    session_id: str
    evicted_session_ids: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class SessionDiscard:
    user_id: UserId
    session_id: str
    discarded: bool


class SessionCheckStatus(str, Enum):
    """
    SessionCheckStatus — per-request verdict of the single-session guard.
    """

    ACTIVE = "active"
    ADOPTED = "adopted"
    EVICTED = "evicted"


@dataclass(frozen=True, slots=True)
class SessionCheck:
    user_id: UserId
    session_id: str
    status: SessionCheckStatus

    @property
    def is_allowed(self) -> bool:
        return self.status is not SessionCheckStatus.EVICTED
