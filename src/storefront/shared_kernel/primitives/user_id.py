from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class UserId:
    """
    UserId — сквозной идентификатор пользователя маркетплейса (positive integer key).

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/domain/entities/account.py
      - src/storefront/contexts/security/application/ports/actor.py
    """

    value: int

    def __post_init__(self) -> None:
        """
        Validate positive integer value for user identifier.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Storage assigns identifiers from a positive sequence.
        Raises:
            ValueError: If `value` is not a positive int (bool is rejected).
        Side Effects:
            None.
        """
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValueError(f"UserId requires int value, got {self.value!r}")
        if self.value <= 0:
            raise ValueError(f"UserId must be > 0, got {self.value}")

    @classmethod
    def from_string(cls, raw_value: str) -> UserId:
        """
        Parse user identifier from decimal string representation.

        Args:
            raw_value: Raw decimal string.
        Returns:
            UserId: Parsed user id value object.
        Assumptions:
            Input string is expected to be non-empty and decimal.
        Raises:
            ValueError: If parsing fails.
        Side Effects:
            None.
        """
        stripped = raw_value.strip()
        if not stripped:
            raise ValueError("UserId.from_string requires non-empty value")
        if not stripped.isdigit():
            raise ValueError(f"UserId.from_string requires decimal digits, got {raw_value!r}")
        return cls(int(stripped))

    def __str__(self) -> str:
        return str(self.value)
