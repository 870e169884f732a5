from __future__ import annotations

from fastapi import HTTPException
from starlette.requests import Request

from storefront.contexts.security.adapters.inbound.api.deps.current_actor import (
    RequireCurrentActorDependency,
)
from storefront.contexts.security.application.ports.actor import ActorPrincipal
from storefront.contexts.security.application.use_cases import SessionGuard


class RequireActiveSessionDependency:
    """
    RequireActiveSessionDependency — authenticated actor whose session survives the
    single-session check.

    Evicted sessions get `401 session_evicted`; the client then clears its cookie.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/use_cases/session_guard.py
      - src/storefront/contexts/security/adapters/inbound/api/deps/current_actor.py
    """

    def __init__(
        self,
        *,
        current_actor_dependency: RequireCurrentActorDependency,
        session_guard: SessionGuard,
    ) -> None:
        if current_actor_dependency is None:  # type: ignore[truthy-bool]
            raise ValueError("RequireActiveSessionDependency requires current_actor_dependency")
        if session_guard is None:  # type: ignore[truthy-bool]
            raise ValueError("RequireActiveSessionDependency requires session_guard")
        self._current_actor_dependency = current_actor_dependency
        self._session_guard = session_guard

    def __call__(self, request: Request) -> ActorPrincipal:
        """
        Resolve actor and apply the per-request single-session verdict.

        Args:
            request: FastAPI HTTP request.
        Returns:
            ActorPrincipal: Actor with an active or freshly adopted session.
        Assumptions:
            Actors resolved from a cookie always carry `session_id`.
        Raises:
            HTTPException: 401 when unauthenticated or evicted.
        Side Effects:
            Refreshes session activity; may self-heal the current-session pointer.
        """
        actor = self._current_actor_dependency(request)
        session_id = actor.session_id if actor.session_id is not None else ""
        check = self._session_guard.check_session(
            user_id=actor.user_id,
            session_id=session_id,
        ).unwrap()
        if not check.is_allowed:
            raise HTTPException(
                status_code=401,
                detail={
                    "error": "session_evicted",
                    "message": "Session was ended by a newer login",
                },
            )
        return actor
