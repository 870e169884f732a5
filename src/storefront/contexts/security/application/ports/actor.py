from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from storefront.contexts.security.domain.value_objects import AccountRole
from storefront.shared_kernel.primitives import UserId


@dataclass(frozen=True, slots=True)
class ActorPrincipal:
    """
    ActorPrincipal — authenticated entity on whose behalf one security operation executes.

    Passed explicitly into every manager operation instead of being read from ambient
    request state.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/adapters/inbound/api/deps/current_actor.py
      - src/storefront/contexts/security/adapters/outbound/security/session_cookie_current_actor.py
    """

    user_id: UserId
    role: AccountRole
    session_id: str | None = None


class CurrentActorUnauthorizedError(ValueError):
    """
    CurrentActorUnauthorizedError — детерминированная ошибка авторизации CurrentActor.

    Related:
      - src/storefront/contexts/security/application/ports/actor.py
      - src/storefront/contexts/security/adapters/inbound/api/deps/current_actor.py
    """

    def __init__(self, *, code: str, message: str) -> None:
        """
        Initialize authorization error with stable code and message.

        Args:
            code: Machine-readable deterministic error code.
            message: Human-readable deterministic description.
        Returns:
            None.
        Assumptions:
            Error code is consumed by API layer in 401 payload.
        Raises:
            None.
        Side Effects:
            None.
        """
        super().__init__(message)
        self.code = code
        self.message = message


class CurrentActor(Protocol):
    """
    CurrentActor — порт извлечения `ActorPrincipal` из session cookie.

    Related:
      - src/storefront/contexts/security/adapters/outbound/security/session_cookie_current_actor.py
      - src/storefront/contexts/security/adapters/inbound/api/deps/current_actor.py
    """

    def require(self, *, session_id: str | None) -> ActorPrincipal:
        """
        Resolve authenticated actor or raise unauthorized error.

        Args:
            session_id: Session token from cookie; may be missing.
        Returns:
            ActorPrincipal: Authenticated actor bound to this session.
        Assumptions:
            Session rows are created by the credential login flow.
        Raises:
            CurrentActorUnauthorizedError: If session is missing, invalidated, stale, or its
                account is unavailable.
        Side Effects:
            None.
        """
        ...
