from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel, ConfigDict

from apps.api.common import register_api_error_handlers
from storefront.contexts.security.application.use_cases import (
    AlreadyInStateError,
    InvalidOrExpiredError,
)
from storefront.platform.errors import StorefrontError


class _ValidationPayload(BaseModel):
    """
    Validation payload model with deliberately non-lexicographic field order for sorting test.
    """

    model_config = ConfigDict(extra="forbid")

    b: int
    a: int


def _app() -> FastAPI:
    app = FastAPI()
    register_api_error_handlers(app=app)

    @app.get("/storefront-error")
    def storefront_error() -> None:
        raise StorefrontError(code="conflict", message="Conflict happened", details={"id": 7})

    @app.get("/storefront-locked")
    def storefront_locked() -> None:
        raise StorefrontError(code="storefront_locked", message="Locked")

    @app.get("/operation-error")
    def operation_error() -> None:
        raise AlreadyInStateError(state="locked")

    @app.get("/invalid-code")
    def invalid_code() -> None:
        raise InvalidOrExpiredError()

    @app.post("/validate")
    def validate(payload: _ValidationPayload) -> dict[str, int]:
        return {"a": payload.a, "b": payload.b}

    return app


def test_storefront_error_handler_maps_code_to_http_status_and_payload() -> None:
    """
    Verify StorefrontError is converted into deterministic API payload and status mapping.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Codes missing from the mapping table fall back to HTTP 500.
    Raises:
        AssertionError: If payload shape or HTTP status mapping is broken.
    Side Effects:
        None.
    """
    client = TestClient(_app())

    conflict = client.get("/storefront-error")
    locked = client.get("/storefront-locked")

    assert conflict.status_code == 409
    assert conflict.json() == {
        "error": {
            "code": "conflict",
            "message": "Conflict happened",
            "details": {"id": 7},
        }
    }
    assert locked.status_code == 423
    assert locked.json()["error"]["details"] == {}


def test_security_operation_error_handler_uses_error_status_and_detail_shape() -> None:
    client = TestClient(_app())

    conflict = client.get("/operation-error")
    invalid = client.get("/invalid-code")

    assert conflict.status_code == 409
    assert conflict.json() == {
        "detail": {
            "error": "conflict",
            "message": "Operation is not allowed in the current state.",
            "details": {"state": "locked"},
        }
    }
    assert invalid.status_code == 422
    assert invalid.json() == {
        "detail": {
            "error": "invalid_or_expired",
            "message": "Verification code is invalid or expired.",
        }
    }


def test_request_validation_error_handler_returns_sorted_validation_errors() -> None:
    """
    Verify validation handler returns deterministic `validation_error` payload with sorted errors.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Errors are sorted lexicographically by path, then code, then message.
    Raises:
        AssertionError: If response payload differs from deterministic contract.
    Side Effects:
        None.
    """
    client = TestClient(_app())

    response = client.post("/validate", json={"z": 1})

    assert response.status_code == 422
    assert response.json() == {
        "error": {
            "code": "validation_error",
            "message": "Validation failed",
            "details": {
                "errors": [
                    {"path": "body.a", "code": "required", "message": "Field required"},
                    {"path": "body.b", "code": "required", "message": "Field required"},
                    {
                        "path": "body.z",
                        "code": "extra_forbidden",
                        "message": "Extra inputs are not permitted",
                    },
                ]
            },
        }
    }
