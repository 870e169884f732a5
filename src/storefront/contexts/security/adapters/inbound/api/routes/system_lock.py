from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from storefront.contexts.security.adapters.inbound.api.deps.active_session import (
    RequireActiveSessionDependency,
)
from storefront.contexts.security.adapters.inbound.api.deps.storefront_access import (
    RequireStorefrontAccessDependency,
)
from storefront.contexts.security.application.ports.actor import ActorPrincipal
from storefront.contexts.security.application.use_cases import (
    LockStatusView,
    SecurityOperationError,
    StorefrontAccess,
    SystemLockManager,
)


class SystemLockStatusResponse(BaseModel):
    """
    SystemLockStatusResponse — API payload describing storefront lock state.

    `remaining_seconds` is set only while the lock is pending.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/use_cases/system_lock_manager.py
      - apps/api/routes/security.py
    """

    lock_key: str
    status: str
    lock_time: datetime | None
    remaining_seconds: int | None
    updated_by: int | None
    updated_at: datetime


class StorefrontAccessResponse(BaseModel):
    allowed: bool
    status: str


def build_system_lock_router(
    *,
    manager: SystemLockManager,
    active_session_dependency: RequireActiveSessionDependency,
    storefront_access_dependency: RequireStorefrontAccessDependency,
) -> APIRouter:
    """
    Build router exposing storefront lock status and back-office lock controls.

    Args:
        manager: Storefront lock state machine.
        active_session_dependency: Auth dependency for lock/unlock.
        storefront_access_dependency: Gate dependency for public storefront endpoints.
    Returns:
        APIRouter: Router with `/system/*` and `/storefront/access` endpoints.
    Assumptions:
        Status endpoint is public so the UI can render the countdown for everyone.
    Raises:
        ValueError: If required dependencies are missing.
    Side Effects:
        None.
    """
    if manager is None:  # type: ignore[truthy-bool]
        raise ValueError("build_system_lock_router requires manager")
    if active_session_dependency is None:  # type: ignore[truthy-bool]
        raise ValueError("build_system_lock_router requires active_session_dependency")
    if storefront_access_dependency is None:  # type: ignore[truthy-bool]
        raise ValueError("build_system_lock_router requires storefront_access_dependency")

    router = APIRouter(tags=["system-lock"])

    @router.get("/system/status", response_model=SystemLockStatusResponse)
    def get_system_status() -> SystemLockStatusResponse:
        """
        Return current lock status, persisting a due activation first.

        Args:
            None.
        Returns:
            SystemLockStatusResponse: Observed lock state.
        Assumptions:
            Any read may be the one that flips `pending_lock` to `locked`.
        Raises:
            HTTPException: Never for valid state.
        Side Effects:
            May write the lock row.
        """
        try:
            view = manager.get_status().unwrap()
        except SecurityOperationError as error:
            raise HTTPException(
                status_code=error.status_code,
                detail=error.payload(),
            ) from error
        return _status_response(view)

    @router.post("/system/lock", response_model=SystemLockStatusResponse, status_code=202)
    def post_system_lock(
        actor: ActorPrincipal = Depends(active_session_dependency),
    ) -> SystemLockStatusResponse:
        """
        Schedule storefront lock after the configured delay.

        Args:
            actor: Authenticated back-office actor.
        Returns:
            SystemLockStatusResponse: Pending status with countdown.
        Assumptions:
            Only `open` can be scheduled.
        Raises:
            HTTPException: 403 for customers, 409 when already pending or locked.
        Side Effects:
            Writes the lock row.
        """
        try:
            view = manager.schedule_lock(actor=actor).unwrap()
        except SecurityOperationError as error:
            raise HTTPException(
                status_code=error.status_code,
                detail=error.payload(),
            ) from error
        return _status_response(view)

    @router.post("/system/unlock", response_model=SystemLockStatusResponse)
    def post_system_unlock(
        actor: ActorPrincipal = Depends(active_session_dependency),
    ) -> SystemLockStatusResponse:
        try:
            view = manager.unlock(actor=actor).unwrap()
        except SecurityOperationError as error:
            raise HTTPException(
                status_code=error.status_code,
                detail=error.payload(),
            ) from error
        return _status_response(view)

    @router.get("/storefront/access", response_model=StorefrontAccessResponse)
    def get_storefront_access(
        access: StorefrontAccess = Depends(storefront_access_dependency),
    ) -> StorefrontAccessResponse:
        return StorefrontAccessResponse(allowed=access.allowed, status=access.status.value)

    return router


def _status_response(view: LockStatusView) -> SystemLockStatusResponse:
    return SystemLockStatusResponse(
        lock_key=view.lock_key,
        status=view.status.value,
        lock_time=view.lock_time,
        remaining_seconds=view.remaining_seconds,
        updated_by=view.updated_by.value if view.updated_by is not None else None,
        updated_at=view.updated_at,
    )
