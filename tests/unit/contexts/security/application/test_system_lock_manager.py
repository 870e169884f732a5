from __future__ import annotations

from datetime import datetime, timedelta, timezone

from storefront.contexts.security.adapters.outbound.persistence.in_memory import (
    InMemorySystemLockRepository,
)
from storefront.contexts.security.application.ports import (
    ActorPrincipal,
    SecurityClock,
    SecurityHooks,
)
from storefront.contexts.security.application.use_cases import (
    ActorNotPermittedError,
    AlreadyInStateError,
    SystemLockManager,
)
from storefront.contexts.security.domain.entities import SystemLock
from storefront.contexts.security.domain.value_objects import AccountRole, LockStatus
from storefront.shared_kernel.primitives import UserId

_START = datetime(2026, 10, 17, 21, 0, 0, tzinfo=timezone.utc)
_ADMIN = ActorPrincipal(user_id=UserId(1), role=AccountRole.ADMIN, session_id="admin-1")
_STAFF = ActorPrincipal(user_id=UserId(2), role=AccountRole.STAFF, session_id="staff-1")
_CUSTOMER = ActorPrincipal(user_id=UserId(7), role=AccountRole.CUSTOMER, session_id="cust-1")


class _MutableClock(SecurityClock):
    def __init__(self, *, now_value: datetime) -> None:
        self._now_value = now_value

    def advance(self, *, delta: timedelta) -> None:
        self._now_value = self._now_value + delta

    def now(self) -> datetime:
        return self._now_value


class _LostRaceLockRepository(InMemorySystemLockRepository):
    """
    Repository that lets a competing writer win the next compare-and-set.
    """

    def __init__(self) -> None:
        super().__init__()
        self.competing_write: SystemLock | None = None

    def compare_and_set(self, *, expected: SystemLock, replacement: SystemLock) -> bool:
        if self.competing_write is not None:
            self.put(lock=self.competing_write)
            self.competing_write = None
        return super().compare_and_set(expected=expected, replacement=replacement)


def _manager(
    *,
    repository: InMemorySystemLockRepository | None = None,
    clock: _MutableClock | None = None,
    transitions: list[str] | None = None,
) -> tuple[SystemLockManager, InMemorySystemLockRepository, _MutableClock]:
    effective_repository = repository if repository is not None else InMemorySystemLockRepository()
    effective_clock = clock if clock is not None else _MutableClock(now_value=_START)
    recorded = transitions if transitions is not None else []
    manager = SystemLockManager(
        repository=effective_repository,
        clock=effective_clock,
        lock_delay=timedelta(seconds=60),
        hooks=SecurityHooks(
            on_lock_scheduled=lambda: recorded.append("scheduled"),
            on_lock_activated=lambda: recorded.append("activated"),
            on_lock_released=lambda: recorded.append("released"),
        ),
    )
    return manager, effective_repository, effective_clock


def test_get_status_provisions_open_lock_on_first_read() -> None:
    manager, repository, _ = _manager()

    view = manager.get_status().unwrap()

    assert view.status is LockStatus.OPEN
    assert view.lock_key == "customer_access"
    assert view.remaining_seconds is None
    assert repository.get(lock_key="customer_access") is not None


def test_scheduled_lock_counts_down_and_activates_lazily() -> None:
    """
    Verify schedule -> pending with countdown -> locked on first read after trigger time.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Activation is persisted by the read that observes it; no timer runs.
    Raises:
        AssertionError: If countdown or activation semantics drift.
    Side Effects:
        None.
    """
    transitions: list[str] = []
    manager, repository, clock = _manager(transitions=transitions)

    scheduled = manager.schedule_lock(actor=_ADMIN).unwrap()
    clock.advance(delta=timedelta(seconds=30))
    halfway = manager.get_status().unwrap()
    clock.advance(delta=timedelta(seconds=30))
    locked = manager.get_status().unwrap()

    assert scheduled.status is LockStatus.PENDING_LOCK
    assert scheduled.remaining_seconds == 60
    assert scheduled.lock_time == _START + timedelta(seconds=60)
    assert halfway.status is LockStatus.PENDING_LOCK
    assert halfway.remaining_seconds == 30
    assert locked.status is LockStatus.LOCKED
    assert locked.updated_by == _ADMIN.user_id
    stored = repository.get(lock_key="customer_access")
    assert stored is not None and stored.status is LockStatus.LOCKED
    assert transitions == ["scheduled", "activated"]

    manager.get_status()
    assert transitions == ["scheduled", "activated"]


def test_check_access_blocks_customers_and_anonymous_but_not_back_office() -> None:
    manager, _, clock = _manager()
    manager.schedule_lock(actor=_STAFF)

    pending_verdict = manager.check_access(actor=None).unwrap()
    clock.advance(delta=timedelta(seconds=61))
    anonymous = manager.check_access(actor=None).unwrap()
    customer = manager.check_access(actor=_CUSTOMER).unwrap()
    admin = manager.check_access(actor=_ADMIN).unwrap()

    assert pending_verdict.allowed is True
    assert pending_verdict.status is LockStatus.PENDING_LOCK
    assert (anonymous.allowed, anonymous.status) == (False, LockStatus.LOCKED)
    assert customer.allowed is False
    assert admin.allowed is True


def test_schedule_lock_rejects_pending_locked_and_customers() -> None:
    manager, _, clock = _manager()

    forbidden = manager.schedule_lock(actor=_CUSTOMER)
    manager.schedule_lock(actor=_ADMIN)
    while_pending = manager.schedule_lock(actor=_ADMIN)
    clock.advance(delta=timedelta(minutes=2))
    while_locked = manager.schedule_lock(actor=_STAFF)

    assert isinstance(forbidden.error, ActorNotPermittedError)
    assert isinstance(while_pending.error, AlreadyInStateError)
    assert while_pending.error.status_code == 409
    assert isinstance(while_locked.error, AlreadyInStateError)
    assert while_locked.error.details == {"state": "locked"}


def test_unlock_opens_from_any_state_and_cancels_countdown() -> None:
    transitions: list[str] = []
    manager, _, clock = _manager(transitions=transitions)
    manager.schedule_lock(actor=_ADMIN)

    reopened = manager.unlock(actor=_STAFF).unwrap()
    clock.advance(delta=timedelta(minutes=5))
    later = manager.get_status().unwrap()

    assert reopened.status is LockStatus.OPEN
    assert reopened.updated_by == _STAFF.user_id
    assert later.status is LockStatus.OPEN
    assert "activated" not in transitions
    assert isinstance(manager.unlock(actor=_CUSTOMER).error, ActorNotPermittedError)


def test_schedule_lock_reports_conflict_when_concurrent_scheduler_wins() -> None:
    repository = _LostRaceLockRepository()
    manager, _, _ = _manager(repository=repository)
    manager.get_status()
    repository.competing_write = SystemLock.opened(
        lock_key="customer_access",
        updated_by=None,
        at=_START,
    ).scheduled(actor_id=_STAFF.user_id, now=_START, delay=timedelta(seconds=60))

    result = manager.schedule_lock(actor=_ADMIN)

    assert isinstance(result.error, AlreadyInStateError)
    assert result.error.details == {"state": "pending_lock"}
