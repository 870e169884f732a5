from __future__ import annotations

from typing import Any


class SecurityOperationError(ValueError):
    """
    SecurityOperationError — base deterministic application error for security state machines.

    Instances are carried inside `SecurityResult` rather than raised by managers; inbound
    adapters raise them through `SecurityResult.unwrap()` and map `status_code` to HTTP.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/use_cases/security_results.py
      - src/storefront/contexts/security/adapters/inbound/api/routes/verification_requests.py
      - apps/api/common/errors.py
    """

    def __init__(
        self,
        *,
        code: str,
        message: str,
        status_code: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize stable operation error attributes for HTTP mapping.

        Args:
            code: Machine-readable deterministic error code.
            message: Human-readable deterministic message.
            status_code: HTTP status expected by inbound adapter.
            details: Optional deterministic details mapping.
        Returns:
            None.
        Assumptions:
            Status code is final and does not require additional adapter mapping logic.
        Raises:
            None.
        Side Effects:
            None.
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = dict(details) if details is not None else {}

    def payload(self) -> dict[str, Any]:
        """
        Build deterministic HTTP error payload with stable key order.

        Args:
            None.
        Returns:
            dict[str, Any]: `{"error": "...", "message": "..."}` payload, plus `details` when set.
        Assumptions:
            Payload is consumed by FastAPI HTTPException `detail`.
        Raises:
            None.
        Side Effects:
            None.
        """
        payload: dict[str, Any] = {
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            payload["details"] = dict(self.details)
        return payload


class VerificationValidationError(SecurityOperationError):
    """
    VerificationValidationError — proposed attribute value is malformed, unchanged, or taken.

    Related:
      - src/storefront/contexts/security/application/use_cases/verification_rules.py
      - src/storefront/contexts/security/application/use_cases/verification_request_manager.py
    """

    _MESSAGES = {
        "malformed": "Value has an invalid format.",
        "unchanged": "Value is the same as the current one.",
        "taken": "Value is already used by another account.",
    }

    def __init__(self, *, reason: str) -> None:
        """
        Initialize deterministic 422 error for one rejection reason.

        Args:
            reason: One of `malformed`, `unchanged`, `taken`.
        Returns:
            None.
        Assumptions:
            Reasons are safe to disclose; they do not reveal OTP state.
        Raises:
            ValueError: If reason is unknown.
        Side Effects:
            None.
        """
        message = self._MESSAGES.get(reason)
        if message is None:
            raise ValueError(f"unsupported verification validation reason: {reason!r}")
        super().__init__(
            code="validation_error",
            message=message,
            status_code=422,
            details={"reason": reason},
        )
        self.reason = reason


class RequestNotFoundError(SecurityOperationError):
    """
    RequestNotFoundError — unknown id, foreign owner, or terminal request; never distinguished.
    """

    def __init__(self) -> None:
        super().__init__(
            code="not_found",
            message="Verification request not found.",
            status_code=404,
        )


class ActorNotPermittedError(SecurityOperationError):
    """
    ActorNotPermittedError — actor role or account does not allow the requested operation.
    """

    def __init__(self) -> None:
        super().__init__(
            code="forbidden",
            message="Operation is not permitted for this account.",
            status_code=403,
        )


class InvalidOrExpiredError(SecurityOperationError):
    """
    InvalidOrExpiredError — single collapsed outcome of every failed verification attempt.

    Wrong code, expiry, unknown id and reuse all produce this exact error so that callers
    learn nothing about which cause applied.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/use_cases/verification_request_manager.py
    """

    def __init__(self) -> None:
        """
        Initialize deterministic 422 verification failure.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Message must stay identical for all causes.
        Raises:
            None.
        Side Effects:
            None.
        """
        super().__init__(
            code="invalid_or_expired",
            message="Verification code is invalid or expired.",
            status_code=422,
        )


class AlreadyInStateError(SecurityOperationError):
    """
    AlreadyInStateError — transition is illegal from the currently observed state.
    """

    def __init__(self, *, state: str) -> None:
        super().__init__(
            code="conflict",
            message="Operation is not allowed in the current state.",
            status_code=409,
            details={"state": state},
        )
        self.state = state


class DispatchFailureError(SecurityOperationError):
    """
    DispatchFailureError — code notification was not delivered; the request itself stays valid.

    Related:
      - src/storefront/contexts/security/application/ports/notification_dispatcher.py
      - src/storefront/contexts/security/application/use_cases/verification_request_manager.py
    """

    def __init__(self, *, channel: str) -> None:
        super().__init__(
            code="dispatch_failed",
            message="Verification code could not be delivered. Request a resend.",
            status_code=502,
            details={"channel": channel},
        )
        self.channel = channel
