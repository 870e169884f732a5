from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Protocol

from storefront.shared_kernel.primitives import UserId


class UserCriticalSection(Protocol):
    """
    UserCriticalSection — per-user mutual exclusion for multi-step session transitions.

    Session adoption, eviction and logout of one user never interleave; different users
    proceed in parallel.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/use_cases/session_guard.py
      - src/storefront/contexts/security/adapters/outbound/persistence/in_memory/
        user_critical_section.py
      - src/storefront/contexts/security/adapters/outbound/persistence/postgres/
        advisory_lock_critical_section.py
    """

    def hold(self, *, user_id: UserId) -> AbstractContextManager[None]:
        """
        Return context manager that holds exclusive access for `user_id`.

        Args:
            user_id: Serialization key.
        Returns:
            AbstractContextManager[None]: Context entered for the whole transition.
        Assumptions:
            Sections are not re-entered by the same caller.
        Raises:
            None.
        Side Effects:
            Blocks until concurrent holders for the same user exit.
        """
        ...
