from __future__ import annotations

from enum import Enum


class VerificationState(str, Enum):
    """
    VerificationState — persisted lifecycle state of one verification request.

    Expiry is not a stored state: a `PENDING` request is expired when `expires_at <= now`.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/domain/entities/verification_request.py
      - alembic/versions/20261017_0001_security_v1.py
    """

    PENDING = "pending"
    CONSUMED = "consumed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not VerificationState.PENDING
