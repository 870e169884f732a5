from __future__ import annotations

from datetime import datetime, timezone

from fastapi.testclient import TestClient

from apps.api.main.app import create_app
from storefront.contexts.security.domain.entities import Account
from storefront.contexts.security.domain.value_objects import AccountRole
from storefront.shared_kernel.primitives import UserId

_TEST_ENVIRON = {
    "STOREFRONT_ENV": "test",
    "SECURITY_CONFIG_PATH": "configs/test/security.yaml",
}


def test_create_app_serves_open_storefront_status() -> None:
    client = TestClient(create_app(environ=_TEST_ENVIRON))

    response = client.get("/system/status")

    assert response.status_code == 200
    payload = response.json()
    assert payload["lock_key"] == "customer_access"
    assert payload["status"] == "open"


def test_create_app_exports_lock_transition_counter() -> None:
    """
    Verify scheduling a lock through the app increments the app-local Prometheus counter.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Each `create_app` call owns a fresh registry, so counts start at zero.
    Raises:
        AssertionError: If metrics wiring or admin session gate drifts.
    Side Effects:
        None.
    """
    app = create_app(environ=_TEST_ENVIRON)
    persistence = app.state.security.persistence
    persistence.accounts.add(
        account=Account(
            user_id=UserId(1),
            role=AccountRole.ADMIN,
            email="admin@gmail.com",
            email_verified_at=None,
            phone=None,
            current_session_id="sess-admin",
        )
    )
    persistence.sessions.touch(
        session_id="sess-admin",
        user_id=UserId(1),
        at=datetime.now(timezone.utc),
    )
    client = TestClient(app)
    client.cookies.set("storefront_session", "sess-admin")

    scheduled = client.post("/system/lock")
    metrics = client.get("/metrics/")

    assert scheduled.status_code == 202
    assert scheduled.json()["status"] == "pending_lock"
    assert metrics.status_code == 200
    assert 'security_lock_transitions_total{transition="scheduled"} 1.0' in metrics.text


def test_create_app_instances_do_not_share_metric_registries() -> None:
    first = TestClient(create_app(environ=_TEST_ENVIRON))
    second = TestClient(create_app(environ=_TEST_ENVIRON))

    assert first.get("/metrics/").status_code == 200
    assert second.get("/metrics/").status_code == 200
