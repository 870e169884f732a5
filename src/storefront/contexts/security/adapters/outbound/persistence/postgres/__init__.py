from .account_repository import PostgresAccountRepository
from .advisory_lock_critical_section import PostgresAdvisoryLockCriticalSection
from .gateway import PsycopgSecurityPostgresGateway, SecurityPostgresGateway
from .session_repository import PostgresSessionRepository
from .system_lock_repository import PostgresSystemLockRepository
from .verification_request_repository import PostgresVerificationRequestRepository

__all__ = [
    "PostgresAccountRepository",
    "PostgresAdvisoryLockCriticalSection",
    "PostgresSessionRepository",
    "PostgresSystemLockRepository",
    "PostgresVerificationRequestRepository",
    "PsycopgSecurityPostgresGateway",
    "SecurityPostgresGateway",
]
