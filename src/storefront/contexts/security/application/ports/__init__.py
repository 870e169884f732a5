from .account_repository import AccountRepository
from .actor import ActorPrincipal, CurrentActor, CurrentActorUnauthorizedError
from .clock import SecurityClock
from .notification_dispatcher import (
    DispatchError,
    DispatchReceipt,
    NotificationChannel,
    NotificationDispatcher,
    OtpNotification,
)
from .otp_code_generator import OtpCodeGenerator
from .security_hooks import SecurityHooks, emit_hook
from .session_repository import SessionRepository
from .sleeper import SecuritySleeper
from .system_lock_repository import SystemLockRepository
from .user_critical_section import UserCriticalSection
from .verification_request_repository import VerificationRequestRepository

__all__ = [
    "AccountRepository",
    "ActorPrincipal",
    "CurrentActor",
    "CurrentActorUnauthorizedError",
    "DispatchError",
    "DispatchReceipt",
    "NotificationChannel",
    "NotificationDispatcher",
    "OtpCodeGenerator",
    "OtpNotification",
    "SecurityClock",
    "SecurityHooks",
    "SecuritySleeper",
    "SessionRepository",
    "SystemLockRepository",
    "UserCriticalSection",
    "VerificationRequestRepository",
    "emit_hook",
]
