from __future__ import annotations

from enum import Enum


class VerificationType(str, Enum):
    """
    VerificationType — tag of the account attribute targeted by one OTP verification flow.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/use_cases/verification_rules.py
      - src/storefront/contexts/security/domain/entities/verification_request.py
    """

    EMAIL = "email"
    PHONE = "phone"

    @classmethod
    def parse(cls, raw_value: str) -> VerificationType:
        """
        Parse verification type tag from transport value.

        Args:
            raw_value: Raw tag such as `email` or `phone`.
        Returns:
            VerificationType: Parsed tag.
        Assumptions:
            Tags are case-insensitive on input.
        Raises:
            ValueError: If tag is unknown.
        Side Effects:
            None.
        """
        normalized = raw_value.strip().lower()
        for item in cls:
            if item.value == normalized:
                return item
        raise ValueError(f"unknown verification type: {raw_value!r}")
