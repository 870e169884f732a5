from .account_repository import InMemoryAccountRepository
from .session_repository import InMemorySessionRepository
from .system_lock_repository import InMemorySystemLockRepository
from .user_critical_section import InMemoryUserCriticalSection
from .verification_request_repository import InMemoryVerificationRequestRepository

__all__ = [
    "InMemoryAccountRepository",
    "InMemorySessionRepository",
    "InMemorySystemLockRepository",
    "InMemoryUserCriticalSection",
    "InMemoryVerificationRequestRepository",
]
