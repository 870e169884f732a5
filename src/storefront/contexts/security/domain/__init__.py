from .entities import Account, SessionRecord, SystemLock, VerificationRequest
from .value_objects import AccountRole, LockStatus, VerificationState, VerificationType

__all__ = [
    "Account",
    "AccountRole",
    "LockStatus",
    "SessionRecord",
    "SystemLock",
    "VerificationRequest",
    "VerificationState",
    "VerificationType",
]
