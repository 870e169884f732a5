from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

import pytest
import requests

from storefront.contexts.security.adapters.outbound.notifications import (
    LogOnlyNotificationDispatcher,
    NotificationDispatcherHooks,
    WebhookNotificationDispatcher,
    WebhookNotificationDispatcherConfig,
)
from storefront.contexts.security.application.ports import (
    DispatchError,
    NotificationChannel,
    OtpNotification,
)
from storefront.contexts.security.domain.value_objects import VerificationType
from storefront.shared_kernel.primitives import UserId

_PAYLOAD = OtpNotification(
    request_id=12,
    verification_type=VerificationType.PHONE,
    destination="+639171234567",
    code="482913",
    expires_at=datetime(2026, 10, 17, 12, 15, 0, tzinfo=timezone.utc),
)


class _FakeResponse:
    def __init__(self, *, status_code: int, body: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("no json body")
        return self._body


class _FakeSession:
    """
    Fake HTTP session recording webhook POST calls.
    """

    def __init__(
        self,
        *,
        response: _FakeResponse | None = None,
        error: Exception | None = None,
    ) -> None:
        self._response = response
        self._error = error
        self.calls: list[dict[str, Any]] = []

    def post(
        self,
        url: str,
        *,
        json: Mapping[str, Any],
        headers: Mapping[str, str],
        timeout: float,
    ) -> _FakeResponse:
        self.calls.append(
            {"url": url, "json": dict(json), "headers": dict(headers), "timeout": timeout}
        )
        if self._error is not None:
            raise self._error
        assert self._response is not None
        return self._response


class _Counter:
    def __init__(self) -> None:
        self.value = 0

    def bump(self) -> None:
        self.value += 1


def _dispatcher(
    *,
    session: _FakeSession,
    sent: _Counter | None = None,
    errors: _Counter | None = None,
    token: str | None = " secret-token ",
) -> WebhookNotificationDispatcher:
    return WebhookNotificationDispatcher(
        config=WebhookNotificationDispatcherConfig(
            url=" https://notify.internal/otp ",
            token=token,
            send_timeout_s=2.5,
        ),
        session=session,
        hooks=NotificationDispatcherHooks(
            on_dispatch_sent=sent.bump if sent is not None else None,
            on_dispatch_error=errors.bump if errors is not None else None,
        ),
    )


def test_webhook_dispatcher_posts_payload_and_returns_provider_reference() -> None:
    session = _FakeSession(response=_FakeResponse(status_code=202, body={"id": "msg-77"}))
    sent = _Counter()

    receipt = _dispatcher(session=session, sent=sent).send(
        user_id=UserId(7),
        channel=NotificationChannel.SMS,
        payload=_PAYLOAD,
    )

    assert receipt.channel is NotificationChannel.SMS
    assert receipt.provider_reference == "msg-77"
    assert sent.value == 1
    call = session.calls[0]
    assert call["url"] == "https://notify.internal/otp"
    assert call["timeout"] == 2.5
    assert call["headers"]["Authorization"] == "Bearer secret-token"
    assert call["json"] == {
        "user_id": 7,
        "channel": "sms",
        "verification_type": "phone",
        "request_id": 12,
        "destination": "+639171234567",
        "code": "482913",
        "expires_at": "2026-10-17T12:15:00+00:00",
    }


def test_webhook_dispatcher_omits_auth_header_for_blank_token() -> None:
    session = _FakeSession(response=_FakeResponse(status_code=200, text="ok"))

    receipt = _dispatcher(session=session, token="   ").send(
        user_id=UserId(7),
        channel=NotificationChannel.EMAIL,
        payload=_PAYLOAD,
    )

    assert receipt.provider_reference is None
    assert "Authorization" not in session.calls[0]["headers"]


def test_webhook_dispatcher_maps_non_2xx_status_to_dispatch_error() -> None:
    session = _FakeSession(response=_FakeResponse(status_code=503, text="gateway down"))
    errors = _Counter()

    with pytest.raises(DispatchError) as error_info:
        _dispatcher(session=session, errors=errors).send(
            user_id=UserId(7),
            channel=NotificationChannel.SMS,
            payload=_PAYLOAD,
        )

    assert error_info.value.reason == "status_503"
    assert error_info.value.channel is NotificationChannel.SMS
    assert errors.value == 1


def test_webhook_dispatcher_maps_transport_failure_to_dispatch_error() -> None:
    session = _FakeSession(error=requests.ConnectionError("refused"))
    errors = _Counter()

    with pytest.raises(DispatchError, match="transport_error"):
        _dispatcher(session=session, errors=errors).send(
            user_id=UserId(7),
            channel=NotificationChannel.EMAIL,
            payload=_PAYLOAD,
        )

    assert errors.value == 1


@pytest.mark.parametrize(
    ("url", "timeout"),
    [("", 1.0), ("ftp://notify.internal", 1.0), ("https://notify.internal", 0.0)],
)
def test_webhook_config_rejects_invalid_values(url: str, timeout: float) -> None:
    with pytest.raises(ValueError):
        WebhookNotificationDispatcherConfig(url=url, token=None, send_timeout_s=timeout)


def test_log_only_dispatcher_logs_code_and_counts_sent(caplog: pytest.LogCaptureFixture) -> None:
    sent = _Counter()
    dispatcher = LogOnlyNotificationDispatcher(
        hooks=NotificationDispatcherHooks(on_dispatch_sent=sent.bump)
    )

    with caplog.at_level(logging.INFO):
        receipt = dispatcher.send(
            user_id=UserId(7),
            channel=NotificationChannel.SMS,
            payload=_PAYLOAD,
        )

    assert receipt.provider_reference is None
    assert sent.value == 1
    assert "code=482913" in caplog.text
