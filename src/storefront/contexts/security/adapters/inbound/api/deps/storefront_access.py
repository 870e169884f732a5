from __future__ import annotations

from fastapi import HTTPException
from starlette.requests import Request

from storefront.contexts.security.adapters.inbound.api.deps.current_actor import (
    RequireCurrentActorDependency,
)
from storefront.contexts.security.application.ports.actor import ActorPrincipal
from storefront.contexts.security.application.use_cases import (
    StorefrontAccess,
    SystemLockManager,
)


class RequireStorefrontAccessDependency:
    """
    RequireStorefrontAccessDependency — gate for public storefront routes while the system
    lock is active.

    Anonymous visitors and customers get `423 storefront_locked` once the lock is active;
    back-office actors always pass.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/use_cases/system_lock_manager.py
      - src/storefront/contexts/security/adapters/inbound/api/routes/system_lock.py
    """

    def __init__(
        self,
        *,
        lock_manager: SystemLockManager,
        current_actor_dependency: RequireCurrentActorDependency,
    ) -> None:
        if lock_manager is None:  # type: ignore[truthy-bool]
            raise ValueError("RequireStorefrontAccessDependency requires lock_manager")
        if current_actor_dependency is None:  # type: ignore[truthy-bool]
            raise ValueError("RequireStorefrontAccessDependency requires current_actor_dependency")
        self._lock_manager = lock_manager
        self._current_actor_dependency = current_actor_dependency

    def __call__(self, request: Request) -> StorefrontAccess:
        """
        Resolve optional actor and enforce the lock verdict.

        Args:
            request: FastAPI HTTP request.
        Returns:
            StorefrontAccess: Allowed verdict with observed lock status.
        Assumptions:
            A missing or unusable session cookie means an anonymous visitor.
        Raises:
            HTTPException: 423 when the storefront is locked for this visitor.
        Side Effects:
            May persist a due lock activation.
        """
        access = self._lock_manager.check_access(actor=self._optional_actor(request)).unwrap()
        if not access.allowed:
            raise HTTPException(
                status_code=423,
                detail={
                    "error": "storefront_locked",
                    "message": "Storefront is temporarily unavailable",
                },
            )
        return access

    def _optional_actor(self, request: Request) -> ActorPrincipal | None:
        session_id = request.cookies.get(self._current_actor_dependency.cookie_name)
        if session_id is None:
            return None
        try:
            return self._current_actor_dependency.resolve(session_id=session_id)
        except HTTPException:
            return None
