from fastapi import HTTPException
from starlette.requests import Request

from storefront.contexts.security.application.ports.actor import (
    ActorPrincipal,
    CurrentActor,
    CurrentActorUnauthorizedError,
)


class RequireCurrentActorDependency:
    """
    RequireCurrentActorDependency — FastAPI dependency resolving the actor behind a session cookie.

    Does not apply the single-session verdict, so a second login that is still resolving its
    conflict can reach the conflict endpoints.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/actor.py
      - src/storefront/contexts/security/adapters/outbound/security/session_cookie_current_actor.py
      - src/storefront/contexts/security/adapters/inbound/api/routes/single_session.py
    """

    def __init__(self, *, current_actor: CurrentActor, cookie_name: str) -> None:
        """
        Initialize dependency with current-actor port and cookie key.

        Args:
            current_actor: Port resolving actor principal from session id.
            cookie_name: Cookie key where session id is stored.
        Returns:
            None.
        Assumptions:
            Cookie name is shared with the login flow that issues sessions.
        Raises:
            ValueError: If dependencies are invalid.
        Side Effects:
            None.
        """
        normalized_cookie_name = cookie_name.strip()
        if current_actor is None:  # type: ignore[truthy-bool]
            raise ValueError("RequireCurrentActorDependency requires current_actor")
        if not normalized_cookie_name:
            raise ValueError("RequireCurrentActorDependency requires non-empty cookie_name")

        self._current_actor = current_actor
        self._cookie_name = normalized_cookie_name

    @property
    def cookie_name(self) -> str:
        return self._cookie_name

    def __call__(self, request: Request) -> ActorPrincipal:
        """
        Resolve authenticated actor from incoming request cookies.

        Args:
            request: FastAPI HTTP request.
        Returns:
            ActorPrincipal: Actor bound to the presented session.
        Assumptions:
            Session id is stored in configured cookie key.
        Raises:
            HTTPException: 401 with deterministic payload for unauthorized requests.
        Side Effects:
            None.
        """
        return self.resolve(session_id=request.cookies.get(self._cookie_name))

    def resolve(self, *, session_id: str | None) -> ActorPrincipal:
        try:
            return self._current_actor.require(session_id=session_id)
        except CurrentActorUnauthorizedError as error:
            raise HTTPException(
                status_code=401,
                detail={
                    "error": error.code,
                    "message": error.message,
                },
            ) from error
