from __future__ import annotations

from enum import Enum


class AccountRole(str, Enum):
    """
    AccountRole — marketplace account type.

    Back-office roles (`admin`, `staff`) manage the storefront lock and are never locked out.

    Related:
      - src/storefront/contexts/security/application/ports/actor.py
      - src/storefront/contexts/security/application/use_cases/system_lock_manager.py
    """

    ADMIN = "admin"
    STAFF = "staff"
    CUSTOMER = "customer"
    MEMBER = "member"
    LOGISTIC = "logistic"

    @property
    def is_back_office(self) -> bool:
        return self in (AccountRole.ADMIN, AccountRole.STAFF)
