from .account import Account
from .session_record import SessionRecord
from .system_lock import SystemLock
from .verification_request import OTP_CODE_DIGITS, VerificationRequest, is_otp_code

__all__ = [
    "OTP_CODE_DIGITS",
    "Account",
    "SessionRecord",
    "SystemLock",
    "VerificationRequest",
    "is_otp_code",
]
