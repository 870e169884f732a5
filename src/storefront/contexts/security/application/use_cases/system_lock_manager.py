from __future__ import annotations

import logging
from datetime import datetime, timedelta

from storefront.contexts.security.application.ports import (
    ActorPrincipal,
    SecurityClock,
    SecurityHooks,
    SystemLockRepository,
    emit_hook,
)
from storefront.contexts.security.domain.entities import SystemLock
from storefront.contexts.security.domain.utc import ensure_utc_datetime
from storefront.contexts.security.domain.value_objects import LockStatus

from .security_errors import ActorNotPermittedError, AlreadyInStateError
from .security_models import LockStatusView, StorefrontAccess
from .security_results import SecurityResult

log = logging.getLogger(__name__)

DEFAULT_LOCK_KEY = "customer_access"
DEFAULT_LOCK_DELAY = timedelta(seconds=60)


class SystemLockManager:
    """
    SystemLockManager — scheduled storefront lock with lazy, read-triggered activation.

    No timer runs in the background: a `pending_lock` row whose trigger time has passed is
    persisted as `locked` by whichever read observes it first.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/domain/entities/system_lock.py
      - src/storefront/contexts/security/application/ports/system_lock_repository.py
      - src/storefront/contexts/security/adapters/inbound/api/routes/system_lock.py
    """

    def __init__(
        self,
        *,
        repository: SystemLockRepository,
        clock: SecurityClock,
        lock_key: str = DEFAULT_LOCK_KEY,
        lock_delay: timedelta = DEFAULT_LOCK_DELAY,
        hooks: SecurityHooks | None = None,
    ) -> None:
        """
        Initialize manager dependencies.

        Args:
            repository: Lock row persistence port.
            clock: UTC time source.
            lock_key: Key of the managed lock row.
            lock_delay: Delay between scheduling and activation.
            hooks: Optional metrics callbacks.
        Returns:
            None.
        Assumptions:
            One manager instance handles one lock key.
        Raises:
            ValueError: If dependency is missing, key is blank or delay is negative.
        Side Effects:
            None.
        """
        if repository is None:  # type: ignore[truthy-bool]
            raise ValueError("SystemLockManager requires repository")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("SystemLockManager requires clock")
        if not lock_key.strip():
            raise ValueError("SystemLockManager.lock_key must be non-empty")
        if lock_delay < timedelta(0):
            raise ValueError("SystemLockManager.lock_delay must be >= 0")

        self._repository = repository
        self._clock = clock
        self._lock_key = lock_key.strip()
        self._lock_delay = lock_delay
        self._hooks = hooks if hooks is not None else SecurityHooks()

    def get_status(self) -> SecurityResult[LockStatusView]:
        """
        Read lock status, materializing a due activation before returning.

        Args:
            None.
        Returns:
            SecurityResult[LockStatusView]: Observed status with remaining seconds when pending.
        Assumptions:
            Repeated calls are idempotent once the row is `locked`.
        Raises:
            None.
        Side Effects:
            May provision the row and may persist the `pending_lock -> locked` transition.
        """
        now = self._now()
        return SecurityResult.success(LockStatusView.from_lock(self._observed(now=now), now=now))

    def schedule_lock(self, *, actor: ActorPrincipal) -> SecurityResult[LockStatusView]:
        """
        Move lock from `open` to `pending_lock` triggering after the configured delay.

        Args:
            actor: Back-office user scheduling the lock.
        Returns:
            SecurityResult[LockStatusView]: Pending status, `AlreadyInStateError` when the lock
                is already pending or locked, `ActorNotPermittedError` for customer roles.
        Assumptions:
            A concurrent scheduler loses the compare-and-set and observes `AlreadyInState`.
        Raises:
            None.
        Side Effects:
            Conditionally updates the lock row.
        """
        if not actor.role.is_back_office:
            return SecurityResult.failure(ActorNotPermittedError())

        now = self._now()
        current = self._observed(now=now)
        if current.status is not LockStatus.OPEN:
            return SecurityResult.failure(AlreadyInStateError(state=current.status.value))

        scheduled = current.scheduled(actor_id=actor.user_id, now=now, delay=self._lock_delay)
        if not self._repository.compare_and_set(expected=current, replacement=scheduled):
            latest = self._observed(now=now)
            return SecurityResult.failure(AlreadyInStateError(state=latest.status.value))

        emit_hook(self._hooks.on_lock_scheduled)
        log.info(
            "storefront lock scheduled lock_key=%s actor_id=%s lock_time=%s",
            self._lock_key,
            actor.user_id,
            scheduled.lock_time.isoformat() if scheduled.lock_time is not None else None,
        )
        return SecurityResult.success(LockStatusView.from_lock(scheduled, now=now))

    def unlock(self, *, actor: ActorPrincipal) -> SecurityResult[LockStatusView]:
        """
        Force the lock to `open` from any state.

        Args:
            actor: Back-office user releasing the lock.
        Returns:
            SecurityResult[LockStatusView]: Open status, or `ActorNotPermittedError`.
        Assumptions:
            Unlock never conflicts; it overwrites whatever is stored.
        Raises:
            None.
        Side Effects:
            Writes the lock row.
        """
        if not actor.role.is_back_office:
            return SecurityResult.failure(ActorNotPermittedError())

        now = self._now()
        self._repository.ensure(lock_key=self._lock_key, at=now)
        opened = self._repository.put(
            lock=SystemLock.opened(lock_key=self._lock_key, updated_by=actor.user_id, at=now)
        )
        emit_hook(self._hooks.on_lock_released)
        log.info("storefront lock released lock_key=%s actor_id=%s", self._lock_key, actor.user_id)
        return SecurityResult.success(LockStatusView.from_lock(opened, now=now))

    def check_access(self, *, actor: ActorPrincipal | None) -> SecurityResult[StorefrontAccess]:
        """
        Decide whether `actor` may use the public storefront right now.

        Args:
            actor: Authenticated user or `None` for anonymous visitors.
        Returns:
            SecurityResult[StorefrontAccess]: Access verdict and observed status.
        Assumptions:
            Admin and staff are never locked out.
        Raises:
            None.
        Side Effects:
            Same as `get_status`.
        """
        lock = self._observed(now=self._now())
        allowed = lock.status is not LockStatus.LOCKED or (
            actor is not None and actor.role.is_back_office
        )
        return SecurityResult.success(StorefrontAccess(allowed=allowed, status=lock.status))

    def _observed(self, *, now: datetime) -> SystemLock:
        """
        Load the lock row and persist its lazy activation when due.

        Args:
            now: Current UTC timestamp.
        Returns:
            SystemLock: Snapshot as it stands at `now`.
        Assumptions:
            Losing the activation race means another reader already persisted it.
        Raises:
            None.
        Side Effects:
            May insert or conditionally update the lock row.
        """
        current = self._repository.ensure(lock_key=self._lock_key, at=now)
        observed = current.observe(now=now)
        if observed is current:
            return current
        if self._repository.compare_and_set(expected=current, replacement=observed):
            emit_hook(self._hooks.on_lock_activated)
            log.info(
                "storefront lock activated lock_key=%s scheduled_by=%s",
                self._lock_key,
                observed.updated_by,
            )
            return observed
        # Another reader won; re-read and observe its snapshot.
        latest = self._repository.get(lock_key=self._lock_key)
        if latest is None:
            latest = self._repository.ensure(lock_key=self._lock_key, at=now)
        return latest.observe(now=now)

    def _now(self) -> datetime:
        return ensure_utc_datetime(value=self._clock.now(), field_name="clock.now")
