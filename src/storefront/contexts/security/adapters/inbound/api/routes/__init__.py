from .single_session import (
    SessionAdoptionResponse,
    SessionConflictResponse,
    SessionDiscardResponse,
    build_single_session_router,
)
from .system_lock import (
    StorefrontAccessResponse,
    SystemLockStatusResponse,
    build_system_lock_router,
)
from .verification_requests import (
    CreateVerificationRequest,
    PendingVerificationResponse,
    SubmitVerificationCodeRequest,
    VerificationOutcomeResponse,
    VerificationRequestResponse,
    build_verification_requests_router,
)

__all__ = [
    "CreateVerificationRequest",
    "PendingVerificationResponse",
    "SessionAdoptionResponse",
    "SessionConflictResponse",
    "SessionDiscardResponse",
    "StorefrontAccessResponse",
    "SubmitVerificationCodeRequest",
    "SystemLockStatusResponse",
    "VerificationOutcomeResponse",
    "VerificationRequestResponse",
    "build_single_session_router",
    "build_system_lock_router",
    "build_verification_requests_router",
]
