"""
Shared API error handlers for StorefrontError contract, security operation errors and
deterministic 422 payloads.

Docs:
  - docs/architecture/security/time-gated-security-v1.md
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence, cast

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from storefront.contexts.security.application.use_cases import SecurityOperationError
from storefront.platform.errors import StorefrontError


def register_api_error_handlers(*, app: FastAPI) -> None:
    """
    Register global API handlers for platform, security and request validation errors.

    Args:
        app: FastAPI application instance.
    Returns:
        None.
    Assumptions:
        Handlers are installed once during application startup.
    Raises:
        ValueError: If `app` dependency is missing.
    Side Effects:
        Mutates FastAPI exception-handler registry.
    """
    if app is None:  # type: ignore[truthy-bool]
        raise ValueError("register_api_error_handlers requires app")

    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(SecurityOperationError, security_operation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)


def storefront_error_handler(_request: Request, error: Exception) -> JSONResponse:
    """
    Convert StorefrontError into deterministic JSON response payload.

    Args:
        _request: Starlette request object (unused).
        error: Raised StorefrontError instance.
    Returns:
        JSONResponse: Response with contract payload `{"error": {...}}`.
    Assumptions:
        HTTP status comes from `StorefrontError.status_code`; unknown codes map to 500.
    Raises:
        None.
    Side Effects:
        None.
    """
    storefront_error = cast(StorefrontError, error)
    status_code = storefront_error.status_code
    return JSONResponse(status_code=status_code, content=storefront_error.to_payload())


def security_operation_error_handler(_request: Request, error: Exception) -> JSONResponse:
    """
    Render a security operation error that escaped route-level mapping.

    Args:
        _request: Starlette request object (unused).
        error: Raised SecurityOperationError instance.
    Returns:
        JSONResponse: Same `{"detail": {...}}` shape routes produce through HTTPException.
    Assumptions:
        Error carries its own final HTTP status.
    Raises:
        None.
    Side Effects:
        None.
    """
    operation_error = cast(SecurityOperationError, error)
    return JSONResponse(
        status_code=operation_error.status_code,
        content={"detail": operation_error.payload()},
    )


def request_validation_error_handler(_request: Request, error: Exception) -> JSONResponse:
    """
    Convert FastAPI RequestValidationError to canonical `validation_error` payload.

    Args:
        _request: Starlette request object (unused).
        error: Raised validation exception from FastAPI/Pydantic.
    Returns:
        JSONResponse: HTTP 422 payload with deterministically sorted `details.errors` list.
    Assumptions:
        Validation errors include `loc`, `type`, and `msg` attributes.
    Raises:
        None.
    Side Effects:
        None.
    """
    validation_error = cast(RequestValidationError, error)
    storefront_error = StorefrontError.validation_failed(
        errors=_sorted_validation_errors(raw_errors=validation_error.errors())
    )
    return storefront_error_handler(_request, storefront_error)


def _sorted_validation_errors(*, raw_errors: Any) -> list[dict[str, str]]:
    """
    Convert raw validation errors into list sorted by path, code, and message.

    Args:
        raw_errors: Raw iterable from FastAPI validation subsystem.
    Returns:
        list[dict[str, str]]: Sorted normalized validation items.
    Assumptions:
        Unknown raw shapes are stringified.
    Raises:
        None.
    Side Effects:
        None.
    """
    if not isinstance(raw_errors, Sequence) or isinstance(raw_errors, (str, bytes, bytearray)):
        return []

    items: list[dict[str, str]] = []
    for raw_error in raw_errors:
        if not isinstance(raw_error, Mapping):
            items.append(
                {"path": "unknown", "code": "validation_error", "message": str(raw_error)}
            )
            continue
        items.append(
            {
                "path": _normalize_error_path(loc=raw_error.get("loc")),
                "code": _normalize_error_code(raw_type=raw_error.get("type")),
                "message": str(raw_error.get("msg", "Validation error")),
            }
        )
    return sorted(items, key=lambda item: (item["path"], item["code"], item["message"]))


def _normalize_error_path(*, loc: Any) -> str:
    if isinstance(loc, Sequence) and not isinstance(loc, (str, bytes, bytearray)):
        path_parts = [str(part) for part in loc]
        if path_parts:
            return ".".join(path_parts)
    if loc is None:
        return "unknown"
    return str(loc)


def _normalize_error_code(*, raw_type: Any) -> str:
    """
    Normalize raw validation error type; Pydantic `missing` becomes `required`.
    """
    normalized = str(raw_type).strip().lower() if raw_type is not None else ""
    if not normalized:
        return "validation_error"
    if normalized == "missing" or normalized.endswith(".missing"):
        return "required"
    return normalized
