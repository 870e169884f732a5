from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

STATUS_BY_CODE: Mapping[str, int] = {
    "validation_error": 422,
    "invalid_or_expired": 422,
    "not_found": 404,
    "forbidden": 403,
    "conflict": 409,
    "unauthorized": 401,
    "session_evicted": 401,
    "storefront_locked": 423,
    "dispatch_failed": 502,
    "unexpected_error": 500,
}


@dataclass(frozen=True, slots=True)
class StorefrontError(Exception):
    """
    StorefrontError — platform error rendered as `{"error": {"code", "message", "details"}}`.

    Security state machines carry their own `SecurityOperationError`; this contract covers
    boundary failures that happen before a manager is reached (request validation, wiring).

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - apps/api/common/errors.py
      - src/storefront/contexts/security/application/use_cases/security_errors.py
    """

    code: str
    message: str
    details: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        """
        Strip code and message, then freeze details into sorted plain-Python payloads.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Unknown codes are allowed and render as HTTP 500.
        Raises:
            ValueError: If `code` or `message` are blank.
            TypeError: If `details` is not a mapping.
        Side Effects:
            Replaces frozen fields with normalized copies.
        """
        for field_name in ("code", "message"):
            stripped = getattr(self, field_name).strip()
            if not stripped:
                raise ValueError(f"StorefrontError.{field_name} must be non-empty")
            object.__setattr__(self, field_name, stripped)

        if self.details is None:
            return
        if not isinstance(self.details, Mapping):
            raise TypeError("StorefrontError.details must be a mapping when provided")
        object.__setattr__(self, "details", _plain(value=self.details))

    @classmethod
    def validation_failed(cls, *, errors: Sequence[Mapping[str, str]]) -> StorefrontError:
        return cls(
            code="validation_error",
            message="Validation failed",
            details={"errors": [dict(item) for item in errors]},
        )

    @property
    def status_code(self) -> int:
        return STATUS_BY_CODE.get(self.code, 500)

    def to_payload(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": dict(self.details or {}),
            }
        }


def _plain(*, value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            str(key): _plain(value=item)
            for key, item in sorted(value.items(), key=lambda pair: str(pair[0]))
        }
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [_plain(value=item) for item in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)
