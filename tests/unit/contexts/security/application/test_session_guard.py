from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone

from storefront.contexts.security.adapters.outbound.persistence.in_memory import (
    InMemoryAccountRepository,
    InMemorySessionRepository,
    InMemoryUserCriticalSection,
)
from storefront.contexts.security.application.ports import (
    SecurityClock,
    SecurityHooks,
    SecuritySleeper,
    emit_hook,
)
from storefront.contexts.security.application.use_cases import (
    ActorNotPermittedError,
    AlreadyInStateError,
    SessionCheckStatus,
    SessionGuard,
)
from storefront.contexts.security.domain.entities import Account, SessionRecord
from storefront.contexts.security.domain.value_objects import AccountRole
from storefront.shared_kernel.primitives import UserId

_START = datetime(2026, 10, 17, 9, 0, 0, tzinfo=timezone.utc)
_USER = UserId(7)


class _MutableClock(SecurityClock):
    def __init__(self, *, now_value: datetime) -> None:
        self._now_value = now_value

    def advance(self, *, delta: timedelta) -> None:
        self._now_value = self._now_value + delta

    def now(self) -> datetime:
        return self._now_value


class _ObservingSleeper(SecuritySleeper):
    """
    Sleeper that records requested pauses and snapshots session rows at sleep time.
    """

    def __init__(self, *, sessions: InMemorySessionRepository) -> None:
        self._sessions = sessions
        self.calls: list[float] = []
        self.rows_during_sleep: tuple[SessionRecord, ...] = ()

    def sleep(self, *, seconds: float) -> None:
        self.calls.append(seconds)
        self.rows_during_sleep = self._sessions.list_for_user(user_id=_USER)


class _Fixture:
    def __init__(self, *, current_session_id: str | None = None) -> None:
        self.clock = _MutableClock(now_value=_START)
        self.accounts = InMemoryAccountRepository(
            accounts=(
                Account(
                    user_id=_USER,
                    role=AccountRole.CUSTOMER,
                    email="buyer@gmail.com",
                    email_verified_at=None,
                    phone=None,
                    current_session_id=current_session_id,
                ),
            )
        )
        self.sessions = InMemorySessionRepository()
        self.sleeper = _ObservingSleeper(sessions=self.sessions)
        self.evicted_counts: list[int] = []
        self.guard = SessionGuard(
            accounts=self.accounts,
            sessions=self.sessions,
            critical_section=InMemoryUserCriticalSection(),
            clock=self.clock,
            sleeper=self.sleeper,
            settle_delay=timedelta(milliseconds=100),
            session_lifetime=timedelta(minutes=120),
            hooks=SecurityHooks(on_sessions_evicted=self.evicted_counts.append),
        )

    def login(self, *, session_id: str) -> None:
        self.sessions.touch(session_id=session_id, user_id=_USER, at=self.clock.now())

    def current_session_id(self) -> str | None:
        account = self.accounts.find_by_user_id(user_id=_USER)
        assert account is not None
        return account.current_session_id


def _with_incumbent() -> _Fixture:
    fixture = _Fixture(current_session_id="sess-old")
    fixture.login(session_id="sess-old")
    fixture.login(session_id="sess-new")
    return fixture


def test_detect_conflict_reports_live_incumbent_only() -> None:
    fixture = _with_incumbent()

    live = fixture.guard.detect_conflict(user_id=_USER, new_session_id="sess-new").unwrap()
    same = fixture.guard.detect_conflict(user_id=_USER, new_session_id="sess-old").unwrap()
    fixture.clock.advance(delta=timedelta(minutes=121))
    stale = fixture.guard.detect_conflict(user_id=_USER, new_session_id="sess-new").unwrap()

    assert live.has_conflict is True
    assert same.has_conflict is False
    assert stale.has_conflict is False


def test_detect_conflict_ignores_missing_or_invalidated_incumbent() -> None:
    missing = _Fixture(current_session_id="sess-gone")
    missing.login(session_id="sess-new")
    invalidated = _with_incumbent()
    invalidated.sessions.invalidate_others(user_id=_USER, keep_session_id="sess-new")

    assert (
        missing.guard.detect_conflict(user_id=_USER, new_session_id="sess-new").unwrap()
    ).has_conflict is False
    assert (
        invalidated.guard.detect_conflict(user_id=_USER, new_session_id="sess-new").unwrap()
    ).has_conflict is False
    assert isinstance(
        missing.guard.detect_conflict(user_id=UserId(99), new_session_id="x").error,
        ActorNotPermittedError,
    )


def test_force_logout_invalidates_then_settles_then_deletes_other_sessions() -> None:
    """
    Verify two-phase eviction order and adoption of the new session.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        The sleeper observes rows exactly between invalidation and deletion.
    Raises:
        AssertionError: If eviction phases or account pointer drift.
    Side Effects:
        None.
    """
    fixture = _with_incumbent()
    fixture.login(session_id="sess-tablet")

    adoption = fixture.guard.force_logout_and_adopt(
        user_id=_USER,
        new_session_id="sess-new",
    ).unwrap()

    assert adoption.evicted_session_ids == ("sess-old", "sess-tablet")
    assert fixture.sleeper.calls == [0.1]
    during = {row.session_id: row.is_invalidated for row in fixture.sleeper.rows_during_sleep}
    assert during == {"sess-new": False, "sess-old": True, "sess-tablet": True}
    remaining = fixture.sessions.list_for_user(user_id=_USER)
    assert [row.session_id for row in remaining] == ["sess-new"]
    assert fixture.current_session_id() == "sess-new"
    assert fixture.evicted_counts == [2]


def test_force_logout_without_other_sessions_skips_settling_delay() -> None:
    fixture = _Fixture()
    fixture.login(session_id="sess-new")

    adoption = fixture.guard.force_logout_and_adopt(
        user_id=_USER,
        new_session_id="sess-new",
    ).unwrap()

    assert adoption.evicted_session_ids == ()
    assert fixture.sleeper.calls == []
    assert fixture.evicted_counts == []
    assert fixture.current_session_id() == "sess-new"


class _OverlapTrackingSleeper(SecuritySleeper):
    """
    Sleeper that really pauses and records how many callers were inside `sleep` at once.
    """

    def __init__(self, *, pause_s: float) -> None:
        self._pause_s = pause_s
        self._mutex = threading.Lock()
        self._active = 0
        self.max_active = 0

    def sleep(self, *, seconds: float) -> None:
        with self._mutex:
            self._active += 1
            self.max_active = max(self.max_active, self._active)
        try:
            time.sleep(self._pause_s)
        finally:
            with self._mutex:
                self._active -= 1


def test_concurrent_force_logouts_serialize_and_leave_one_session() -> None:
    """
    Verify two devices forcing logout at once end with one row that is also the current one.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Per-user critical section holds across the settling pause.
    Raises:
        AssertionError: If settling windows overlap or the pointer names a deleted session.
    Side Effects:
        Starts worker threads and sleeps for a few tens of milliseconds.
    """
    fixture = _with_incumbent()
    fixture.login(session_id="sess-tablet")
    sleeper = _OverlapTrackingSleeper(pause_s=0.05)
    guard = SessionGuard(
        accounts=fixture.accounts,
        sessions=fixture.sessions,
        critical_section=InMemoryUserCriticalSection(),
        clock=fixture.clock,
        sleeper=sleeper,
        settle_delay=timedelta(milliseconds=100),
        session_lifetime=timedelta(minutes=120),
    )
    barrier = threading.Barrier(2)
    adopted: list[str] = []
    adopted_lock = threading.Lock()

    def _force(session_id: str) -> None:
        barrier.wait(timeout=5)
        adoption = guard.force_logout_and_adopt(
            user_id=_USER,
            new_session_id=session_id,
        ).unwrap()
        with adopted_lock:
            adopted.append(adoption.session_id)

    workers = [
        threading.Thread(target=_force, args=(session_id,))
        for session_id in ("sess-new", "sess-tablet")
    ]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=5)

    assert sorted(adopted) == ["sess-new", "sess-tablet"]
    assert sleeper.max_active == 1
    remaining = fixture.sessions.list_for_user(user_id=_USER)
    assert len(remaining) == 1
    assert remaining[0].is_invalidated is False
    assert fixture.current_session_id() == remaining[0].session_id


def test_force_logout_reports_evictions_without_hooks() -> None:
    fixture = _with_incumbent()
    guard = SessionGuard(
        accounts=fixture.accounts,
        sessions=fixture.sessions,
        critical_section=InMemoryUserCriticalSection(),
        clock=fixture.clock,
        sleeper=fixture.sleeper,
        settle_delay=timedelta(milliseconds=100),
        session_lifetime=timedelta(minutes=120),
    )

    adoption = guard.force_logout_and_adopt(user_id=_USER, new_session_id="sess-new").unwrap()

    assert adoption.evicted_session_ids == ("sess-old",)
    assert fixture.current_session_id() == "sess-new"


def test_emit_hook_forwards_arguments_and_ignores_missing_callback() -> None:
    received: list[int] = []

    emit_hook(received.append, 3)
    emit_hook(None, 3)

    assert received == [3]


def test_force_logout_rejects_session_owned_by_another_user() -> None:
    fixture = _with_incumbent()
    fixture.sessions.touch(session_id="sess-foreign", user_id=UserId(8), at=_START)

    result = fixture.guard.force_logout_and_adopt(user_id=_USER, new_session_id="sess-foreign")

    assert isinstance(result.error, ActorNotPermittedError)
    assert fixture.current_session_id() == "sess-old"
    assert fixture.sleeper.calls == []


def test_cancel_and_discard_keeps_incumbent_authoritative() -> None:
    fixture = _with_incumbent()

    discard = fixture.guard.cancel_and_discard(user_id=_USER, new_session_id="sess-new").unwrap()
    current = fixture.guard.cancel_and_discard(user_id=_USER, new_session_id="sess-old").unwrap()

    assert discard.discarded is True
    assert fixture.sessions.find(session_id="sess-new") is None
    assert current.discarded is False
    assert fixture.sessions.find(session_id="sess-old") is not None
    assert fixture.current_session_id() == "sess-old"


def test_establish_session_requires_conflict_resolution() -> None:
    fixture = _with_incumbent()

    blocked = fixture.guard.establish_session(user_id=_USER, session_id="sess-new")
    fixture.clock.advance(delta=timedelta(minutes=130))
    fixture.login(session_id="sess-new")
    established = fixture.guard.establish_session(user_id=_USER, session_id="sess-new").unwrap()

    assert isinstance(blocked.error, AlreadyInStateError)
    assert blocked.error.details == {"state": "session_active"}
    assert established.evicted_session_ids == ()
    assert fixture.current_session_id() == "sess-new"


def test_check_session_classifies_active_adopted_and_evicted() -> None:
    fixture = _with_incumbent()

    active = fixture.guard.check_session(user_id=_USER, session_id="sess-old").unwrap()
    contender = fixture.guard.check_session(user_id=_USER, session_id="sess-new").unwrap()
    unknown = fixture.guard.check_session(user_id=_USER, session_id="sess-none").unwrap()

    assert active.status is SessionCheckStatus.ACTIVE
    assert contender.status is SessionCheckStatus.EVICTED
    assert contender.is_allowed is False
    assert unknown.status is SessionCheckStatus.EVICTED


def test_check_session_self_heals_when_incumbent_went_stale() -> None:
    fixture = _Fixture(current_session_id="sess-old")
    fixture.login(session_id="sess-old")
    fixture.clock.advance(delta=timedelta(minutes=119))
    fixture.login(session_id="sess-new")
    fixture.clock.advance(delta=timedelta(minutes=2))

    verdict = fixture.guard.check_session(user_id=_USER, session_id="sess-new").unwrap()

    assert verdict.status is SessionCheckStatus.ADOPTED
    assert verdict.is_allowed is True
    assert fixture.current_session_id() == "sess-new"


def test_check_session_rejects_invalidated_session_during_settling_window() -> None:
    fixture = _with_incumbent()
    fixture.sessions.invalidate_others(user_id=_USER, keep_session_id="sess-new")

    verdict = fixture.guard.check_session(user_id=_USER, session_id="sess-old").unwrap()

    assert verdict.status is SessionCheckStatus.EVICTED


def test_end_session_deletes_row_and_clears_matching_pointer() -> None:
    fixture = _with_incumbent()

    ended = fixture.guard.end_session(user_id=_USER, session_id="sess-old").unwrap()
    again = fixture.guard.end_session(user_id=_USER, session_id="sess-old").unwrap()

    assert ended.discarded is True
    assert again.discarded is False
    assert fixture.current_session_id() is None
    assert fixture.sessions.find(session_id="sess-new") is not None
