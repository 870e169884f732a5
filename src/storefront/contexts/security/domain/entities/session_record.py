from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from storefront.contexts.security.domain.utc import ensure_utc_datetime
from storefront.shared_kernel.primitives import UserId


@dataclass(frozen=True, slots=True)
class SessionRecord:
    """
    SessionRecord — snapshot of one authenticated session row.

    `last_activity=None` is the invalidation marker written during forced eviction so that a
    request still holding the old session observes termination before the row is deleted.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/session_repository.py
      - src/storefront/contexts/security/application/use_cases/session_guard.py
    """

    session_id: str
    user_id: UserId
    last_activity: datetime | None

    def __post_init__(self) -> None:
        """
        Validate session id and optional UTC activity timestamp.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Session ids are opaque non-empty tokens issued by the session store.
        Raises:
            ValueError: If session id is blank or timestamp is not UTC.
        Side Effects:
            None.
        """
        if not self.session_id.strip():
            raise ValueError("SessionRecord.session_id must be non-empty")
        if self.last_activity is not None:
            ensure_utc_datetime(value=self.last_activity, field_name="last_activity")

    @property
    def is_invalidated(self) -> bool:
        return self.last_activity is None

    def is_valid(self, *, now: datetime, lifetime: timedelta) -> bool:
        """
        Return whether the session is live: not invalidated and not idle past `lifetime`.
        """
        if self.last_activity is None:
            return False
        return now - self.last_activity < lifetime
