from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from storefront.contexts.security.domain.utc import ensure_utc_datetime
from storefront.contexts.security.domain.value_objects import LockStatus
from storefront.shared_kernel.primitives import UserId


@dataclass(frozen=True, slots=True)
class SystemLock:
    """
    SystemLock — immutable snapshot of the singleton lock row for one lock key.

    A `PENDING_LOCK` row whose `lock_time` has passed is logically `LOCKED`; `observe`
    materializes that transition when some read touches the row.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/system_lock_repository.py
      - src/storefront/contexts/security/application/use_cases/system_lock_manager.py
      - alembic/versions/20261017_0001_security_v1.py
    """

    lock_key: str
    status: LockStatus
    lock_time: datetime | None
    updated_by: UserId | None
    updated_at: datetime

    def __post_init__(self) -> None:
        """
        Validate status/lock_time pairing and UTC timestamps.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Only `PENDING_LOCK` carries a trigger time.
        Raises:
            ValueError: If lock key is blank or status/lock_time pairing is violated.
        Side Effects:
            Normalizes lock key by stripping surrounding whitespace.
        """
        normalized_key = self.lock_key.strip()
        if not normalized_key:
            raise ValueError("SystemLock.lock_key must be non-empty")
        object.__setattr__(self, "lock_key", normalized_key)
        ensure_utc_datetime(value=self.updated_at, field_name="updated_at")
        if self.status is LockStatus.PENDING_LOCK:
            if self.lock_time is None:
                raise ValueError("SystemLock.lock_time must be set when status is pending_lock")
            ensure_utc_datetime(value=self.lock_time, field_name="lock_time")
            return
        if self.lock_time is not None:
            raise ValueError(
                f"SystemLock.lock_time must be None when status is {self.status.value}"
            )

    @classmethod
    def opened(cls, *, lock_key: str, updated_by: UserId | None, at: datetime) -> SystemLock:
        return cls(
            lock_key=lock_key,
            status=LockStatus.OPEN,
            lock_time=None,
            updated_by=updated_by,
            updated_at=at,
        )

    def observe(self, *, now: datetime) -> SystemLock:
        """
        Return the snapshot as it stands at `now`, applying a due lazy lock transition.

        Args:
            now: Current UTC timestamp.
        Returns:
            SystemLock: `self` when nothing is due, otherwise a `LOCKED` snapshot.
        Assumptions:
            `updated_by` stays attributed to the administrator who scheduled the lock.
        Raises:
            None.
        Side Effects:
            None.
        """
        if self.status is not LockStatus.PENDING_LOCK:
            return self
        assert self.lock_time is not None
        if self.lock_time > now:
            return self
        return SystemLock(
            lock_key=self.lock_key,
            status=LockStatus.LOCKED,
            lock_time=None,
            updated_by=self.updated_by,
            updated_at=self.lock_time,
        )

    def scheduled(self, *, actor_id: UserId, now: datetime, delay: timedelta) -> SystemLock:
        """
        Build `PENDING_LOCK` snapshot triggering at `now + delay`.

        Raises:
            ValueError: If current status is not `OPEN`.
        """
        if self.status is not LockStatus.OPEN:
            raise ValueError(f"SystemLock cannot be scheduled from {self.status.value}")
        return SystemLock(
            lock_key=self.lock_key,
            status=LockStatus.PENDING_LOCK,
            lock_time=now + delay,
            updated_by=actor_id,
            updated_at=now,
        )

    def remaining_seconds(self, *, now: datetime) -> int | None:
        """
        Return whole seconds left until lock activation, or None when not pending.
        """
        if self.status is not LockStatus.PENDING_LOCK or self.lock_time is None:
            return None
        remaining = (self.lock_time - now).total_seconds()
        return max(0, math.ceil(remaining))
