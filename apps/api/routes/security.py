"""
Security API routes.

Docs:
  - docs/architecture/security/time-gated-security-v1.md
"""

from __future__ import annotations

from fastapi import APIRouter

from storefront.contexts.security.adapters.inbound.api.deps import (
    RequireActiveSessionDependency,
    RequireCurrentActorDependency,
    RequireStorefrontAccessDependency,
)
from storefront.contexts.security.adapters.inbound.api.routes import (
    build_single_session_router,
    build_system_lock_router,
    build_verification_requests_router,
)
from storefront.contexts.security.application.use_cases import (
    SessionGuard,
    SystemLockManager,
    VerificationRequestManager,
)


def build_security_router(
    *,
    verification_manager: VerificationRequestManager,
    lock_manager: SystemLockManager,
    session_guard: SessionGuard,
    current_actor_dependency: RequireCurrentActorDependency,
    active_session_dependency: RequireActiveSessionDependency,
    storefront_access_dependency: RequireStorefrontAccessDependency,
) -> APIRouter:
    """
    Build security router facade for FastAPI app composition root.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/adapters/inbound/api/routes/verification_requests.py
      - src/storefront/contexts/security/adapters/inbound/api/routes/system_lock.py
      - src/storefront/contexts/security/adapters/inbound/api/routes/single_session.py
      - apps/api/wiring/modules/security.py

    Args:
        verification_manager: OTP attribute change state machine.
        lock_manager: Storefront lock state machine.
        session_guard: Single-session state machine.
        current_actor_dependency: Actor resolver without single-session verdict.
        active_session_dependency: Actor resolver with single-session verdict.
        storefront_access_dependency: Storefront lock gate.
    Returns:
        APIRouter: Combined security router.
    Assumptions:
        Conflict endpoints must not evict the login attempt that calls them, so they use
        `current_actor_dependency`.
    Raises:
        ValueError: If one of sub-router builders rejects dependencies.
    Side Effects:
        None.
    """
    router = APIRouter()
    router.include_router(
        build_verification_requests_router(
            manager=verification_manager,
            active_session_dependency=active_session_dependency,
        )
    )
    router.include_router(
        build_system_lock_router(
            manager=lock_manager,
            active_session_dependency=active_session_dependency,
            storefront_access_dependency=storefront_access_dependency,
        )
    )
    router.include_router(
        build_single_session_router(
            session_guard=session_guard,
            current_actor_dependency=current_actor_dependency,
        )
    )
    return router
