from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from .security_errors import SecurityOperationError

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class SecurityResult(Generic[T]):
    """
    SecurityResult — typed outcome of one security manager operation.

    A failed result may still carry a value: a request created while its notification failed
    is returned together with `DispatchFailureError`.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/use_cases/security_errors.py
      - src/storefront/contexts/security/adapters/inbound/api/routes/verification_requests.py
    """

    value: T | None = None
    error: SecurityOperationError | None = None

    def __post_init__(self) -> None:
        if self.value is None and self.error is None:
            raise ValueError("SecurityResult requires value or error")

    @classmethod
    def success(cls, value: T) -> SecurityResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: SecurityOperationError, *, value: T | None = None) -> SecurityResult[T]:
        return cls(value=value, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """
        Return carried value or raise carried error.

        Args:
            None.
        Returns:
            T: Operation value.
        Assumptions:
            Used by adapters that prefer exception flow.
        Raises:
            SecurityOperationError: If result carries an error.
        Side Effects:
            None.
        """
        if self.error is not None:
            raise self.error
        assert self.value is not None
        return self.value
