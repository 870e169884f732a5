from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from storefront.contexts.security.domain.utc import ensure_utc_datetime
from storefront.contexts.security.domain.value_objects import AccountRole
from storefront.shared_kernel.primitives import UserId


@dataclass(frozen=True, slots=True)
class Account:
    """
    Account — slice of the marketplace user record touched by security flows.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/account_repository.py
      - src/storefront/contexts/security/application/use_cases/verification_rules.py
      - src/storefront/contexts/security/application/use_cases/session_guard.py
    """

    user_id: UserId
    role: AccountRole
    email: str | None
    email_verified_at: datetime | None
    phone: str | None
    current_session_id: str | None

    def __post_init__(self) -> None:
        if self.email_verified_at is not None:
            ensure_utc_datetime(value=self.email_verified_at, field_name="email_verified_at")
        if self.current_session_id is not None and not self.current_session_id.strip():
            raise ValueError("Account.current_session_id must be non-empty when set")
