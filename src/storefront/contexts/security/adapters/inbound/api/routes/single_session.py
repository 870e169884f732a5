from __future__ import annotations

from typing import TypeVar

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from storefront.contexts.security.adapters.inbound.api.deps.current_actor import (
    RequireCurrentActorDependency,
)
from storefront.contexts.security.application.ports.actor import ActorPrincipal
from storefront.contexts.security.application.use_cases import (
    SecurityOperationError,
    SecurityResult,
    SessionGuard,
)

T = TypeVar("T")


class SessionConflictResponse(BaseModel):
    """
    SessionConflictResponse — whether another live session blocks the caller's login.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/use_cases/session_guard.py
    """

    has_conflict: bool


class SessionAdoptionResponse(BaseModel):
    session_id: str
    evicted_sessions: int


class SessionDiscardResponse(BaseModel):
    discarded: bool


def build_single_session_router(
    *,
    session_guard: SessionGuard,
    current_actor_dependency: RequireCurrentActorDependency,
) -> APIRouter:
    """
    Build router exposing single-active-session conflict resolution and logout.

    Args:
        session_guard: Single-session state machine.
        current_actor_dependency: Auth dependency without single-session verdict.
    Returns:
        APIRouter: Router with `/single-session/*` and `/auth/logout`.
    Assumptions:
        The login flow creates the session row and sets the cookie before these endpoints
        are called.
    Raises:
        ValueError: If required dependencies are missing.
    Side Effects:
        None.
    """
    if session_guard is None:  # type: ignore[truthy-bool]
        raise ValueError("build_single_session_router requires session_guard")
    if current_actor_dependency is None:  # type: ignore[truthy-bool]
        raise ValueError("build_single_session_router requires current_actor_dependency")

    cookie_name = current_actor_dependency.cookie_name
    router = APIRouter(tags=["single-session"])

    @router.get("/single-session/conflict", response_model=SessionConflictResponse)
    def get_conflict(
        actor: ActorPrincipal = Depends(current_actor_dependency),
    ) -> SessionConflictResponse:
        """
        Report whether a different live session is current for the caller.

        Args:
            actor: Actor resolved from the new session cookie.
        Returns:
            SessionConflictResponse: Conflict flag for the UI dialog.
        Assumptions:
            Stale incumbents are not conflicts.
        Raises:
            HTTPException: 401 when unauthenticated.
        Side Effects:
            None.
        """
        conflict = _unwrapped(
            session_guard.detect_conflict(
                user_id=actor.user_id,
                new_session_id=_session_id(actor),
            )
        )
        return SessionConflictResponse(has_conflict=conflict.has_conflict)

    @router.post("/single-session/establish", response_model=SessionAdoptionResponse)
    def post_establish(
        actor: ActorPrincipal = Depends(current_actor_dependency),
    ) -> SessionAdoptionResponse:
        """
        Make the caller's session current when nothing else is live.

        Args:
            actor: Actor resolved from the new session cookie.
        Returns:
            SessionAdoptionResponse: Adopted session.
        Assumptions:
            A 409 response sends the UI to the conflict dialog.
        Raises:
            HTTPException: 409 when another live session is current.
        Side Effects:
            Updates current-session pointer.
        """
        adoption = _unwrapped(
            session_guard.establish_session(user_id=actor.user_id, session_id=_session_id(actor))
        )
        return SessionAdoptionResponse(
            session_id=adoption.session_id,
            evicted_sessions=len(adoption.evicted_session_ids),
        )

    @router.post("/single-session/force-logout", response_model=SessionAdoptionResponse)
    def post_force_logout(
        actor: ActorPrincipal = Depends(current_actor_dependency),
    ) -> SessionAdoptionResponse:
        """
        Evict other sessions of the caller and adopt the caller's session.

        Args:
            actor: Actor resolved from the new session cookie.
        Returns:
            SessionAdoptionResponse: Adopted session and evicted count.
        Assumptions:
            Evicted sessions see `401 session_evicted` on their next request.
        Raises:
            HTTPException: 403 when the session cannot be adopted.
        Side Effects:
            Invalidates and deletes other session rows after the settling delay.
        """
        adoption = _unwrapped(
            session_guard.force_logout_and_adopt(
                user_id=actor.user_id,
                new_session_id=_session_id(actor),
            )
        )
        return SessionAdoptionResponse(
            session_id=adoption.session_id,
            evicted_sessions=len(adoption.evicted_session_ids),
        )

    @router.post("/single-session/cancel", response_model=SessionDiscardResponse)
    def post_cancel(
        response: Response,
        actor: ActorPrincipal = Depends(current_actor_dependency),
    ) -> SessionDiscardResponse:
        """
        Abandon the new login attempt, keeping the incumbent session.
        """
        discard = _unwrapped(
            session_guard.cancel_and_discard(
                user_id=actor.user_id,
                new_session_id=_session_id(actor),
            )
        )
        response.delete_cookie(key=cookie_name, path="/")
        return SessionDiscardResponse(discarded=discard.discarded)

    @router.post("/auth/logout", response_model=SessionDiscardResponse)
    def post_logout(
        response: Response,
        actor: ActorPrincipal = Depends(current_actor_dependency),
    ) -> SessionDiscardResponse:
        discard = _unwrapped(
            session_guard.end_session(user_id=actor.user_id, session_id=_session_id(actor))
        )
        response.delete_cookie(key=cookie_name, path="/")
        return SessionDiscardResponse(discarded=discard.discarded)

    return router


def _session_id(actor: ActorPrincipal) -> str:
    if actor.session_id is None:
        raise HTTPException(
            status_code=401,
            detail={"error": "missing_session", "message": "Session cookie is required"},
        )
    return actor.session_id


def _unwrapped(result: SecurityResult[T]) -> T:
    try:
        return result.unwrap()
    except SecurityOperationError as error:
        raise HTTPException(
            status_code=error.status_code,
            detail=error.payload(),
        ) from error
