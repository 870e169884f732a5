from .account_role import AccountRole
from .attempt_lockout_policy import AttemptLockoutPolicy
from .lock_status import LockStatus
from .verification_state import VerificationState
from .verification_type import VerificationType

__all__ = [
    "AccountRole",
    "AttemptLockoutPolicy",
    "LockStatus",
    "VerificationState",
    "VerificationType",
]
