from .security_errors import (
    ActorNotPermittedError,
    AlreadyInStateError,
    DispatchFailureError,
    InvalidOrExpiredError,
    RequestNotFoundError,
    SecurityOperationError,
    VerificationValidationError,
)
from .security_models import (
    LockStatusView,
    PendingVerificationView,
    SessionAdoption,
    SessionCheck,
    SessionCheckStatus,
    SessionConflict,
    SessionDiscard,
    StorefrontAccess,
    VerificationOutcome,
    VerificationRequestView,
)
from .security_results import SecurityResult
from .session_guard import DEFAULT_SESSION_LIFETIME, DEFAULT_SETTLE_DELAY, SessionGuard
from .system_lock_manager import DEFAULT_LOCK_DELAY, DEFAULT_LOCK_KEY, SystemLockManager
from .verification_request_manager import DEFAULT_OTP_TTL, VerificationRequestManager
from .verification_rules import (
    DEFAULT_VERIFICATION_RULES,
    VerificationRule,
    national_phone,
    normalize_email,
    normalize_phone,
)

__all__ = [
    "DEFAULT_LOCK_DELAY",
    "DEFAULT_LOCK_KEY",
    "DEFAULT_OTP_TTL",
    "DEFAULT_SESSION_LIFETIME",
    "DEFAULT_SETTLE_DELAY",
    "DEFAULT_VERIFICATION_RULES",
    "ActorNotPermittedError",
    "AlreadyInStateError",
    "DispatchFailureError",
    "InvalidOrExpiredError",
    "LockStatusView",
    "PendingVerificationView",
    "RequestNotFoundError",
    "SecurityOperationError",
    "SecurityResult",
    "SessionAdoption",
    "SessionCheck",
    "SessionCheckStatus",
    "SessionConflict",
    "SessionDiscard",
    "SessionGuard",
    "StorefrontAccess",
    "SystemLockManager",
    "VerificationOutcome",
    "VerificationRequestManager",
    "VerificationRequestView",
    "VerificationRule",
    "VerificationValidationError",
    "national_phone",
    "normalize_email",
    "normalize_phone",
]
