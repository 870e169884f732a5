from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from storefront.contexts.security.domain.entities import (
    SessionRecord,
    SystemLock,
    VerificationRequest,
    is_otp_code,
)
from storefront.contexts.security.domain.value_objects import (
    AccountRole,
    AttemptLockoutPolicy,
    LockStatus,
    VerificationState,
    VerificationType,
)
from storefront.shared_kernel.primitives import UserId

_NOW = datetime(2026, 10, 17, 9, 0, 0, tzinfo=timezone.utc)


def _request(**overrides: object) -> VerificationRequest:
    values: dict[str, object] = {
        "request_id": 1,
        "user_id": UserId(7),
        "verification_type": VerificationType.EMAIL,
        "target_value": "buyer@gmail.com",
        "code": "042917",
        "created_at": _NOW,
        "expires_at": _NOW + timedelta(minutes=15),
        "state": VerificationState.PENDING,
        "updated_at": _NOW,
    }
    values.update(overrides)
    return VerificationRequest(**values)  # type: ignore[arg-type]


def test_verification_request_rejects_code_that_is_not_six_digits() -> None:
    with pytest.raises(ValueError):
        _request(code="12345")
    with pytest.raises(ValueError):
        _request(code="12a456")


def test_verification_request_rejects_naive_timestamps_and_reversed_expiry() -> None:
    with pytest.raises(ValueError):
        _request(created_at=datetime(2026, 10, 17, 9, 0, 0))
    with pytest.raises(ValueError):
        _request(expires_at=_NOW)


def test_verification_request_expiry_boundary_is_inclusive() -> None:
    """
    Verify a request is expired exactly at `expires_at`, not one microsecond earlier.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        `now >= expires_at` means expired.
    Raises:
        AssertionError: If the boundary moves.
    Side Effects:
        None.
    """
    request = _request()

    assert request.is_live(now=request.expires_at - timedelta(microseconds=1)) is True
    assert request.is_expired(now=request.expires_at) is True
    assert request.is_live(now=request.expires_at) is False


def test_verification_request_terminal_transitions_are_one_way() -> None:
    consumed = _request().consumed(at=_NOW + timedelta(minutes=1))

    assert consumed.state is VerificationState.CONSUMED
    assert consumed.is_terminal is True
    with pytest.raises(ValueError):
        consumed.cancelled(at=_NOW + timedelta(minutes=2))
    with pytest.raises(ValueError):
        consumed.reissued(
            code="111111",
            expires_at=_NOW + timedelta(minutes=30),
            at=_NOW + timedelta(minutes=2),
        )


def test_verification_request_reissue_replaces_code_and_expiry() -> None:
    later = _NOW + timedelta(minutes=20)
    reissued = _request().reissued(
        code="555000",
        expires_at=later + timedelta(minutes=15),
        at=later,
    )

    assert reissued.code == "555000"
    assert reissued.expires_at == later + timedelta(minutes=15)
    assert reissued.state is VerificationState.PENDING
    assert reissued.matches_code(code="042917") is False
    assert reissued.matches_code(code="555000") is True


def test_verification_request_accepts_only_ascii_digit_codes() -> None:
    request = _request()

    with pytest.raises(ValueError):
        _request(code="١٢٣٤٥٦")
    with pytest.raises(ValueError):
        _request(code="０４２９１７")
    assert is_otp_code("042917") is True
    assert is_otp_code("٠٤٢٩١٧") is False
    assert request.matches_code(code="٠٤٢٩١٧") is False
    assert request.matches_code(code="04291７") is False


def test_attempt_lockout_policy_escalates_after_cap_and_stays_on_last_step() -> None:
    policy = AttemptLockoutPolicy()

    steps = [policy.lockout_for(failed_attempts=count) for count in range(1, 9)]

    assert steps == [
        None,
        None,
        timedelta(minutes=1),
        timedelta(minutes=3),
        timedelta(minutes=5),
        timedelta(hours=24),
        timedelta(hours=24),
        timedelta(hours=24),
    ]
    with pytest.raises(ValueError):
        AttemptLockoutPolicy(max_failed_attempts=0)
    with pytest.raises(ValueError):
        AttemptLockoutPolicy(lockout_steps=())


def test_verification_request_failed_attempts_lock_out_and_survive_reissue() -> None:
    policy = AttemptLockoutPolicy(max_failed_attempts=2)
    first_miss = _request().with_failed_attempt(at=_NOW, policy=policy)
    second_miss = first_miss.with_failed_attempt(at=_NOW + timedelta(seconds=5), policy=policy)

    assert first_miss.failed_attempts == 1
    assert first_miss.locked_until is None
    assert first_miss.is_locked_out(now=_NOW) is False
    assert second_miss.failed_attempts == 2
    assert second_miss.locked_until == _NOW + timedelta(seconds=5) + timedelta(minutes=1)
    assert second_miss.is_locked_out(now=_NOW + timedelta(minutes=1)) is True
    assert second_miss.is_locked_out(now=second_miss.locked_until) is False
    assert second_miss.code == first_miss.code

    reissued = second_miss.reissued(
        code="555000",
        expires_at=_NOW + timedelta(minutes=30),
        at=_NOW + timedelta(seconds=10),
    )
    assert reissued.failed_attempts == 2
    assert reissued.locked_until == second_miss.locked_until
    with pytest.raises(ValueError):
        _request(failed_attempts=-1)
    with pytest.raises(ValueError):
        second_miss.consumed(at=_NOW).with_failed_attempt(at=_NOW, policy=policy)


def test_system_lock_pairs_pending_status_with_lock_time() -> None:
    with pytest.raises(ValueError):
        SystemLock(
            lock_key="customer_access",
            status=LockStatus.PENDING_LOCK,
            lock_time=None,
            updated_by=UserId(1),
            updated_at=_NOW,
        )
    with pytest.raises(ValueError):
        SystemLock(
            lock_key="customer_access",
            status=LockStatus.LOCKED,
            lock_time=_NOW,
            updated_by=UserId(1),
            updated_at=_NOW,
        )


def test_system_lock_observe_activates_only_once_trigger_time_passed() -> None:
    """
    Verify lazy activation: pending before trigger, locked at and after it.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Activation keeps the scheduling administrator as `updated_by`.
    Raises:
        AssertionError: If observe flips early or loses attribution.
    Side Effects:
        None.
    """
    pending = SystemLock.opened(lock_key="customer_access", updated_by=None, at=_NOW).scheduled(
        actor_id=UserId(1),
        now=_NOW,
        delay=timedelta(seconds=60),
    )

    before = pending.observe(now=_NOW + timedelta(seconds=59))
    at_trigger = pending.observe(now=_NOW + timedelta(seconds=60))

    assert before is pending
    assert pending.remaining_seconds(now=_NOW + timedelta(seconds=59, milliseconds=500)) == 1
    assert at_trigger.status is LockStatus.LOCKED
    assert at_trigger.lock_time is None
    assert at_trigger.updated_by == UserId(1)
    assert at_trigger.remaining_seconds(now=_NOW + timedelta(seconds=60)) is None


def test_system_lock_schedules_only_from_open() -> None:
    locked = SystemLock(
        lock_key="customer_access",
        status=LockStatus.LOCKED,
        lock_time=None,
        updated_by=UserId(1),
        updated_at=_NOW,
    )

    with pytest.raises(ValueError):
        locked.scheduled(actor_id=UserId(1), now=_NOW, delay=timedelta(seconds=60))


def test_session_record_validity_uses_marker_and_idle_lifetime() -> None:
    lifetime = timedelta(minutes=120)
    active = SessionRecord(session_id="s-1", user_id=UserId(7), last_activity=_NOW)
    invalidated = SessionRecord(session_id="s-2", user_id=UserId(7), last_activity=None)

    assert active.is_valid(now=_NOW + timedelta(minutes=119), lifetime=lifetime) is True
    assert active.is_valid(now=_NOW + lifetime, lifetime=lifetime) is False
    assert invalidated.is_invalidated is True
    assert invalidated.is_valid(now=_NOW, lifetime=lifetime) is False


def test_value_objects_expose_role_and_type_helpers() -> None:
    assert AccountRole.ADMIN.is_back_office is True
    assert AccountRole.STAFF.is_back_office is True
    assert AccountRole.CUSTOMER.is_back_office is False
    assert VerificationType.parse(" Phone ") is VerificationType.PHONE
    with pytest.raises(ValueError):
        VerificationType.parse("fax")
