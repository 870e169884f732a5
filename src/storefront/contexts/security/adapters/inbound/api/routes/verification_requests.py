from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from storefront.contexts.security.adapters.inbound.api.deps.active_session import (
    RequireActiveSessionDependency,
)
from storefront.contexts.security.application.ports.actor import ActorPrincipal
from storefront.contexts.security.application.use_cases import (
    SecurityOperationError,
    SecurityResult,
    VerificationRequestManager,
    VerificationRequestView,
)
from storefront.contexts.security.domain.value_objects import VerificationType


class CreateVerificationRequest(BaseModel):
    """
    CreateVerificationRequest — API request payload for `POST /security/verifications/{type}`.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/use_cases/verification_request_manager.py
      - apps/api/routes/security.py
    """

    target_value: str


class SubmitVerificationCodeRequest(BaseModel):
    code: str


class VerificationRequestResponse(BaseModel):
    """
    VerificationRequestResponse — public view of one verification request (never the code).

    Related:
      - src/storefront/contexts/security/application/use_cases/security_models.py
    """

    request_id: int
    verification_type: str
    target_value: str
    state: str
    created_at: datetime
    expires_at: datetime


class PendingVerificationResponse(BaseModel):
    verification_type: str
    request: VerificationRequestResponse | None


class VerificationOutcomeResponse(BaseModel):
    request_id: int
    verification_type: str
    applied_value: str
    verified_at: datetime


def build_verification_requests_router(
    *,
    manager: VerificationRequestManager,
    active_session_dependency: RequireActiveSessionDependency,
) -> APIRouter:
    """
    Build router exposing OTP-gated attribute change endpoints.

    Args:
        manager: Verification request state machine.
        active_session_dependency: Auth dependency applying the single-session verdict.
    Returns:
        APIRouter: Router with create, verify, resend, cancel and pending endpoints.
    Assumptions:
        Request ids are only reachable by their owner; foreign ids look unknown.
    Raises:
        ValueError: If required dependencies are missing.
    Side Effects:
        None.
    """
    if manager is None:  # type: ignore[truthy-bool]
        raise ValueError("build_verification_requests_router requires manager")
    if active_session_dependency is None:  # type: ignore[truthy-bool]
        raise ValueError("build_verification_requests_router requires active_session_dependency")

    router = APIRouter(tags=["security"])

    @router.post(
        "/security/verifications/{verification_type}",
        response_model=VerificationRequestResponse,
        status_code=201,
    )
    def post_verification_request(
        verification_type: VerificationType,
        request: CreateVerificationRequest,
        actor: ActorPrincipal = Depends(active_session_dependency),
    ) -> VerificationRequestResponse:
        """
        Create pending change request for email or phone and send its code.

        Args:
            verification_type: Attribute tag from path.
            request: Proposed new value.
            actor: Authenticated actor with an active session.
        Returns:
            VerificationRequestResponse: Created request.
        Assumptions:
            Dispatch failure keeps the row; the client may resend.
        Raises:
            HTTPException: 422 validation, 403 forbidden, 502 dispatch failure.
        Side Effects:
            Persists request row and sends one notification.
        """
        result = manager.create_request(
            actor=actor,
            verification_type=verification_type,
            target_value=request.target_value,
        )
        return _request_response(_unwrap_request(result))

    @router.post(
        "/security/verifications/{request_id}/verify",
        response_model=VerificationOutcomeResponse,
    )
    def post_verify(
        request_id: int,
        request: SubmitVerificationCodeRequest,
        actor: ActorPrincipal = Depends(active_session_dependency),
    ) -> VerificationOutcomeResponse:
        """
        Submit code and apply target value on match.

        Args:
            request_id: Request identifier from path.
            request: Submitted code.
            actor: Authenticated actor with an active session.
        Returns:
            VerificationOutcomeResponse: Applied value and verification timestamp.
        Assumptions:
            Wrong, expired and reused codes share one error shape.
        Raises:
            HTTPException: 422 invalid_or_expired or validation_error.
        Side Effects:
            Consumes request and updates account attribute.
        """
        try:
            outcome = manager.verify(actor=actor, request_id=request_id, code=request.code).unwrap()
        except SecurityOperationError as error:
            raise HTTPException(
                status_code=error.status_code,
                detail=error.payload(),
            ) from error
        return VerificationOutcomeResponse(
            request_id=outcome.request_id,
            verification_type=outcome.verification_type.value,
            applied_value=outcome.applied_value,
            verified_at=outcome.verified_at,
        )

    @router.post(
        "/security/verifications/{request_id}/resend",
        response_model=VerificationRequestResponse,
    )
    def post_resend(
        request_id: int,
        actor: ActorPrincipal = Depends(active_session_dependency),
    ) -> VerificationRequestResponse:
        """
        Reissue code with a fresh expiry and dispatch it again.
        """
        result = manager.resend(actor=actor, request_id=request_id)
        return _request_response(_unwrap_request(result))

    @router.post(
        "/security/verifications/{request_id}/cancel",
        response_model=VerificationRequestResponse,
    )
    def post_cancel(
        request_id: int,
        actor: ActorPrincipal = Depends(active_session_dependency),
    ) -> VerificationRequestResponse:
        result = manager.cancel(actor=actor, request_id=request_id)
        return _request_response(_unwrap_request(result))

    @router.get(
        "/security/verifications/{verification_type}/pending",
        response_model=PendingVerificationResponse,
    )
    def get_pending(
        verification_type: VerificationType,
        actor: ActorPrincipal = Depends(active_session_dependency),
    ) -> PendingVerificationResponse:
        """
        Return live pending request for the attribute, or `request=null`.
        """
        try:
            pending = manager.get_pending(
                actor=actor,
                verification_type=verification_type,
            ).unwrap()
        except SecurityOperationError as error:
            raise HTTPException(
                status_code=error.status_code,
                detail=error.payload(),
            ) from error
        return PendingVerificationResponse(
            verification_type=pending.verification_type.value,
            request=_request_response(pending.request) if pending.request is not None else None,
        )

    return router


def _unwrap_request(result: SecurityResult[VerificationRequestView]) -> VerificationRequestView:
    """
    Unwrap request result, keeping the persisted request in dispatch-failure payloads.

    Args:
        result: Manager operation result.
    Returns:
        VerificationRequestView: Successful value.
    Assumptions:
        A failure carrying a value means the row exists but notification was not delivered.
    Raises:
        HTTPException: Mapped from the carried operation error.
    Side Effects:
        None.
    """
    try:
        return result.unwrap()
    except SecurityOperationError as error:
        detail: dict[str, Any] = error.payload()
        if result.value is not None:
            detail["request"] = _request_response(result.value).model_dump(mode="json")
        raise HTTPException(status_code=error.status_code, detail=detail) from error


def _request_response(view: VerificationRequestView) -> VerificationRequestResponse:
    return VerificationRequestResponse(
        request_id=view.request_id,
        verification_type=view.verification_type.value,
        target_value=view.target_value,
        state=view.state.value,
        created_at=view.created_at,
        expires_at=view.expires_at,
    )
