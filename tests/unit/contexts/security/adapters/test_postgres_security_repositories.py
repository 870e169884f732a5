from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Sequence

import pytest

from storefront.contexts.security.adapters.outbound.persistence.postgres import (
    PostgresAccountRepository,
    PostgresAdvisoryLockCriticalSection,
    PostgresSessionRepository,
    PostgresSystemLockRepository,
    PostgresVerificationRequestRepository,
)
from storefront.contexts.security.domain.entities import SystemLock, VerificationRequest
from storefront.contexts.security.domain.value_objects import (
    AccountRole,
    LockStatus,
    VerificationState,
    VerificationType,
)
from storefront.shared_kernel.primitives import UserId

_NOW = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)
_MANILA = timezone(timedelta(hours=8))


class _FakeGateway:
    """
    Deterministic fake SQL gateway for security Postgres repository unit tests.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/adapters/outbound/persistence/postgres/gateway.py
    """

    def __init__(
        self,
        *,
        fetch_one_results: list[Mapping[str, Any] | None] | None = None,
        fetch_all_results: list[tuple[Mapping[str, Any], ...]] | None = None,
        transaction_results: list[tuple[tuple[Mapping[str, Any], ...], ...]] | None = None,
    ) -> None:
        self._fetch_one_results = list(fetch_one_results or [])
        self._fetch_all_results = list(fetch_all_results or [])
        self._transaction_results = list(transaction_results or [])
        self.fetch_one_calls: list[tuple[str, Mapping[str, Any]]] = []
        self.fetch_all_calls: list[tuple[str, Mapping[str, Any]]] = []
        self.transaction_calls: list[list[tuple[str, Mapping[str, Any]]]] = []

    def fetch_one(self, *, query: str, parameters: Mapping[str, Any]) -> Mapping[str, Any] | None:
        self.fetch_one_calls.append((query, dict(parameters)))
        if not self._fetch_one_results:
            return None
        return self._fetch_one_results.pop(0)

    def fetch_all(
        self,
        *,
        query: str,
        parameters: Mapping[str, Any],
    ) -> tuple[Mapping[str, Any], ...]:
        self.fetch_all_calls.append((query, dict(parameters)))
        if not self._fetch_all_results:
            return tuple()
        return self._fetch_all_results.pop(0)

    def execute(self, *, query: str, parameters: Mapping[str, Any]) -> None:
        raise AssertionError("security repositories do not use execute")

    def fetch_all_in_transaction(
        self,
        *,
        statements: Sequence[tuple[str, Mapping[str, Any]]],
    ) -> tuple[tuple[Mapping[str, Any], ...], ...]:
        self.transaction_calls.append([(query, dict(params)) for query, params in statements])
        if not self._transaction_results:
            return tuple(() for _ in statements)
        return self._transaction_results.pop(0)


def _request_row(**overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": 41,
        "user_id": 7,
        "verification_type": "email",
        "target_value": "new@gmail.com",
        "code": "042117",
        "created_at": _NOW.astimezone(_MANILA),
        "expires_at": (_NOW + timedelta(minutes=15)).astimezone(_MANILA),
        "state": "pending",
        "updated_at": _NOW.astimezone(_MANILA),
        "failed_attempts": 0,
        "locked_until": None,
    }
    row.update(overrides)
    return row


def _snapshot() -> VerificationRequest:
    gateway = _FakeGateway(fetch_one_results=[_request_row()])
    found = PostgresVerificationRequestRepository(gateway=gateway).find_by_id_and_owner(
        request_id=41,
        user_id=UserId(7),
    )
    assert found is not None
    return found


def test_verification_supersede_and_insert_runs_in_one_locked_transaction() -> None:
    gateway = _FakeGateway(
        transaction_results=[((), ({"id": 3}, {"id": 5}), (_request_row(),))],
    )
    repository = PostgresVerificationRequestRepository(gateway=gateway)

    request, superseded = repository.supersede_and_insert(
        user_id=UserId(7),
        verification_type=VerificationType.EMAIL,
        target_value="new@gmail.com",
        code="042117",
        created_at=_NOW,
        expires_at=_NOW + timedelta(minutes=15),
    )

    assert request.request_id == 41
    assert request.state is VerificationState.PENDING
    assert request.created_at == _NOW
    assert request.created_at.tzinfo == timezone.utc
    assert request.failed_attempts == 0
    assert request.locked_until is None
    assert superseded == 2
    assert gateway.fetch_one_calls == []
    assert gateway.fetch_all_calls == []
    (lock_query, lock_parameters), (supersede_query, _), (insert_query, parameters) = (
        gateway.transaction_calls[0]
    )
    assert "pg_advisory_xact_lock" in lock_query
    assert lock_parameters["owner_key"] == "7:email"
    assert "state = %(cancelled_state)s" in supersede_query
    assert "AND state = %(pending_state)s" in supersede_query
    assert "INSERT INTO verification_requests" in insert_query
    assert parameters["pending_state"] == "pending"
    assert parameters["cancelled_state"] == "cancelled"
    assert parameters["user_id"] == 7


def test_verification_supersede_and_insert_rejects_missing_inserted_row() -> None:
    gateway = _FakeGateway(transaction_results=[((), (), ())])
    repository = PostgresVerificationRequestRepository(gateway=gateway)

    with pytest.raises(ValueError, match="insert returned no row"):
        repository.supersede_and_insert(
            user_id=UserId(7),
            verification_type=VerificationType.PHONE,
            target_value="+639171234567",
            code="042117",
            created_at=_NOW,
            expires_at=_NOW + timedelta(minutes=15),
        )


def test_verification_compare_and_set_guards_on_state_code_expiry_and_attempts() -> None:
    gateway = _FakeGateway(fetch_one_results=[None, {"id": 41}])
    repository = PostgresVerificationRequestRepository(gateway=gateway)
    current = _snapshot()
    consumed = current.consumed(at=_NOW + timedelta(minutes=1))

    lost = repository.compare_and_set(expected=current, replacement=consumed)
    won = repository.compare_and_set(expected=current, replacement=consumed)

    assert (lost, won) == (False, True)
    query, parameters = gateway.fetch_one_calls[0]
    assert "AND code = %(expected_code)s" in query
    assert "AND expires_at = %(expected_expires_at)s" in query
    assert "AND failed_attempts = %(expected_failed_attempts)s" in query
    assert parameters["expected_state"] == "pending"
    assert parameters["new_state"] == "consumed"
    assert parameters["expected_code"] == "042117"
    assert parameters["expected_failed_attempts"] == 0


def test_verification_compare_and_set_writes_attempt_counter_and_lockout() -> None:
    gateway = _FakeGateway(fetch_one_results=[{"id": 41}])
    repository = PostgresVerificationRequestRepository(gateway=gateway)
    current = _snapshot()
    locked = replace(current, failed_attempts=3, locked_until=_NOW + timedelta(minutes=1))

    assert repository.compare_and_set(expected=current, replacement=locked) is True

    query, parameters = gateway.fetch_one_calls[0]
    assert "failed_attempts = %(new_failed_attempts)s" in query
    assert "locked_until = %(new_locked_until)s" in query
    assert parameters["new_failed_attempts"] == 3
    assert parameters["new_locked_until"] == _NOW + timedelta(minutes=1)


def test_verification_row_mapping_reads_lockout_in_utc() -> None:
    gateway = _FakeGateway(
        fetch_one_results=[
            _request_row(
                failed_attempts=4,
                locked_until=(_NOW + timedelta(minutes=3)).astimezone(_MANILA),
            )
        ]
    )
    repository = PostgresVerificationRequestRepository(gateway=gateway)

    found = repository.find_by_id_and_owner(request_id=41, user_id=UserId(7))

    assert found is not None
    assert found.failed_attempts == 4
    assert found.locked_until == _NOW + timedelta(minutes=3)
    assert found.locked_until.tzinfo == timezone.utc
    assert found.is_locked_out(now=_NOW) is True


def test_verification_find_pending_filters_live_rows_newest_first() -> None:
    gateway = _FakeGateway()
    repository = PostgresVerificationRequestRepository(gateway=gateway)

    found = repository.find_pending(
        user_id=UserId(7),
        verification_type=VerificationType.PHONE,
        now=_NOW,
    )

    assert found is None
    query, parameters = gateway.fetch_one_calls[0]
    assert "expires_at > %(now)s" in query
    assert "ORDER BY id DESC" in query
    assert parameters["verification_type"] == "phone"


def test_verification_row_mapping_rejects_unknown_state() -> None:
    gateway = _FakeGateway(fetch_one_results=[_request_row(state="expired")])
    repository = PostgresVerificationRequestRepository(gateway=gateway)

    with pytest.raises(ValueError, match="cannot map verification request row"):
        repository.find_by_id_and_owner(request_id=41, user_id=UserId(7))


def test_system_lock_ensure_reads_existing_row_after_insert_conflict() -> None:
    stored = {
        "lock_key": "customer_access",
        "status": "pending_lock",
        "lock_time": (_NOW + timedelta(seconds=60)).astimezone(_MANILA),
        "updated_by": 1,
        "updated_at": _NOW.astimezone(_MANILA),
    }
    gateway = _FakeGateway(fetch_one_results=[None, stored])
    repository = PostgresSystemLockRepository(gateway=gateway)

    lock = repository.ensure(lock_key="customer_access", at=_NOW)

    assert lock.status is LockStatus.PENDING_LOCK
    assert lock.lock_time == _NOW + timedelta(seconds=60)
    assert lock.updated_by == UserId(1)
    assert "ON CONFLICT (lock_key) DO NOTHING" in gateway.fetch_one_calls[0][0]
    assert len(gateway.fetch_one_calls) == 2


def test_system_lock_compare_and_set_matches_nullable_lock_time() -> None:
    gateway = _FakeGateway(fetch_one_results=[{"lock_key": "customer_access"}])
    repository = PostgresSystemLockRepository(gateway=gateway)
    opened = SystemLock.opened(lock_key="customer_access", updated_by=None, at=_NOW)
    scheduled = opened.scheduled(actor_id=UserId(1), now=_NOW, delay=timedelta(seconds=60))

    assert repository.compare_and_set(expected=opened, replacement=scheduled) is True
    query, parameters = gateway.fetch_one_calls[0]
    assert "IS NOT DISTINCT FROM %(expected_lock_time)s" in query
    assert parameters["expected_lock_time"] is None
    assert parameters["new_status"] == "pending_lock"
    assert parameters["updated_by"] == 1


def test_session_touch_returns_none_when_row_owned_by_other_user() -> None:
    gateway = _FakeGateway(fetch_one_results=[None])
    repository = PostgresSessionRepository(gateway=gateway)

    assert repository.touch(session_id="sess-1", user_id=UserId(7), at=_NOW) is None
    query, _ = gateway.fetch_one_calls[0]
    assert "WHERE sessions.user_id = EXCLUDED.user_id" in query


def test_session_invalidate_then_delete_uses_owner_scoped_statements() -> None:
    gateway = _FakeGateway(
        fetch_all_results=[
            ({"session_id": "sess-b"}, {"session_id": "sess-a"}),
            ({"session_id": "sess-a"}, {"session_id": "sess-b"}),
        ]
    )
    repository = PostgresSessionRepository(gateway=gateway)

    invalidated = repository.invalidate_others(user_id=UserId(7), keep_session_id="sess-new")
    deleted = repository.delete_many(user_id=UserId(7), session_ids=invalidated)

    assert invalidated == ("sess-a", "sess-b")
    assert deleted == 2
    assert "SET last_activity = NULL" in gateway.fetch_all_calls[0][0]
    assert gateway.fetch_all_calls[1][1]["session_ids"] == ["sess-a", "sess-b"]
    assert repository.delete_many(user_id=UserId(7), session_ids=()) == 0
    assert len(gateway.fetch_all_calls) == 2


def test_session_find_maps_invalidation_marker() -> None:
    gateway = _FakeGateway(
        fetch_one_results=[{"session_id": "sess-a", "user_id": 7, "last_activity": None}]
    )

    record = PostgresSessionRepository(gateway=gateway).find(session_id="sess-a")

    assert record is not None
    assert record.is_invalidated is True


def test_account_uniqueness_check_lowercases_email_candidates() -> None:
    gateway = _FakeGateway(fetch_one_results=[{"held": 1}, None])
    repository = PostgresAccountRepository(gateway=gateway)

    email_taken = repository.is_held_by_other(
        verification_type=VerificationType.EMAIL,
        values=("Taken@Gmail.com",),
        excluding_user_id=UserId(7),
    )
    phone_taken = repository.is_held_by_other(
        verification_type=VerificationType.PHONE,
        values=("9181112222", "09181112222", "+639181112222"),
        excluding_user_id=UserId(7),
    )

    assert (email_taken, phone_taken) == (True, False)
    email_query, email_parameters = gateway.fetch_one_calls[0]
    assert "lower(email) = ANY(%(values)s)" in email_query
    assert email_parameters["values"] == ["taken@gmail.com"]
    assert gateway.fetch_one_calls[1][1]["values"] == [
        "9181112222",
        "09181112222",
        "+639181112222",
    ]


def test_account_apply_verified_email_sets_verified_timestamp() -> None:
    gateway = _FakeGateway(
        fetch_one_results=[
            {
                "id": 7,
                "role": "customer",
                "email": "new@gmail.com",
                "email_verified_at": _NOW.astimezone(_MANILA),
                "phone": None,
                "current_session_id": "sess-a",
            }
        ]
    )
    repository = PostgresAccountRepository(gateway=gateway)

    account = repository.apply_verified_attribute(
        user_id=UserId(7),
        verification_type=VerificationType.EMAIL,
        value="new@gmail.com",
        verified_at=_NOW,
    )

    assert account.role is AccountRole.CUSTOMER
    assert account.email_verified_at == _NOW
    assert "email_verified_at = %(verified_at)s" in gateway.fetch_one_calls[0][0]


def test_account_set_current_session_rejects_missing_account() -> None:
    repository = PostgresAccountRepository(gateway=_FakeGateway())

    with pytest.raises(ValueError, match="missing account"):
        repository.set_current_session(user_id=UserId(404), session_id="sess-a")


class _FakeConnection:
    def __init__(self) -> None:
        self.statements: list[tuple[str, Mapping[str, Any]]] = []

    def __enter__(self) -> _FakeConnection:
        return self

    def __exit__(self, *_exc_info: object) -> None:
        return None

    def execute(self, query: str, parameters: Mapping[str, Any]) -> None:
        self.statements.append((query, dict(parameters)))


def test_advisory_lock_critical_section_unlocks_after_failure() -> None:
    connection = _FakeConnection()
    dsns: list[str] = []

    def _connect(dsn: str) -> _FakeConnection:
        dsns.append(dsn)
        return connection

    critical_section = PostgresAdvisoryLockCriticalSection(
        dsn=" postgresql://localhost/storefront ",
        namespace=9,
        connect=_connect,
    )

    with pytest.raises(RuntimeError, match="boom"):
        with critical_section.hold(user_id=UserId(7)):
            raise RuntimeError("boom")

    assert dsns == ["postgresql://localhost/storefront"]
    assert [query.split("(")[0] for query, _ in connection.statements] == [
        "SELECT pg_advisory_lock",
        "SELECT pg_advisory_unlock",
    ]
    assert connection.statements[0][1] == {"namespace": 9, "user_key": "7"}
