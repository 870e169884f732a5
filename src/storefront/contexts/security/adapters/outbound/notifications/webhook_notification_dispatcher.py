from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, cast

import requests

from storefront.contexts.security.application.ports import (
    DispatchError,
    DispatchReceipt,
    NotificationChannel,
    NotificationDispatcher,
    OtpNotification,
    emit_hook,
)
from storefront.shared_kernel.primitives import UserId

from .notification_dispatcher_hooks import NotificationDispatcherHooks

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WebhookNotificationDispatcherConfig:
    """
    WebhookNotificationDispatcherConfig — runtime settings for the delivery webhook adapter.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/adapters/outbound/config/security_runtime_config.py
      - apps/api/wiring/modules/security.py
      - configs/prod/security.yaml
    """

    url: str
    token: str | None
    send_timeout_s: float

    def __post_init__(self) -> None:
        """
        Validate webhook config invariants.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Token is provided through environment; blank token means no auth header.
        Raises:
            ValueError: If one of config values is invalid.
        Side Effects:
            Normalizes url and token.
        """
        normalized_url = self.url.strip()
        if not normalized_url:
            raise ValueError("WebhookNotificationDispatcherConfig.url must be non-empty")
        if not normalized_url.startswith(("https://", "http://")):
            raise ValueError(
                "WebhookNotificationDispatcherConfig.url must start with http:// or https://"
            )
        if self.send_timeout_s <= 0:
            raise ValueError("WebhookNotificationDispatcherConfig.send_timeout_s must be > 0")
        normalized_token = self.token.strip() if self.token is not None else ""
        object.__setattr__(self, "url", normalized_url)
        object.__setattr__(self, "token", normalized_token or None)


class WebhookHttpResponse(Protocol):
    """
    WebhookHttpResponse — minimal HTTP response contract used by the webhook dispatcher.
    """

    status_code: int

    def json(self) -> Any:
        ...

    @property
    def text(self) -> str:
        ...


class WebhookHttpSession(Protocol):
    """
    WebhookHttpSession — minimal HTTP session contract for webhook dispatcher testability.

    Related:
      - tests/unit/contexts/security/adapters/test_webhook_notification_dispatcher.py
    """

    def post(
        self,
        url: str,
        *,
        json: Mapping[str, Any],
        headers: Mapping[str, str],
        timeout: float,
    ) -> WebhookHttpResponse:
        ...


class WebhookNotificationDispatcher(NotificationDispatcher):
    """
    WebhookNotificationDispatcher — delivers code notifications to an email/SMS gateway webhook.

    One POST per call; any transport error or non-2xx response becomes `DispatchError`.
    Retries are left to the caller (resend).

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/notification_dispatcher.py
      - apps/api/wiring/modules/security.py
      - tests/unit/contexts/security/adapters/test_webhook_notification_dispatcher.py
    """

    def __init__(
        self,
        *,
        config: WebhookNotificationDispatcherConfig,
        session: WebhookHttpSession | None = None,
        hooks: NotificationDispatcherHooks | None = None,
    ) -> None:
        """
        Initialize webhook dispatcher dependencies.

        Args:
            config: Validated webhook config.
            session: Optional injected HTTP session for tests.
            hooks: Optional metrics callbacks.
        Returns:
            None.
        Assumptions:
            Session is shared across API worker threads.
        Raises:
            ValueError: If config is missing.
        Side Effects:
            Creates `requests.Session` when no custom session is injected.
        """
        if config is None:  # type: ignore[truthy-bool]
            raise ValueError("WebhookNotificationDispatcher requires config")
        self._config = config
        self._session = (
            session
            if session is not None
            else cast(WebhookHttpSession, requests.Session())
        )
        self._hooks = hooks if hooks is not None else NotificationDispatcherHooks()

    def send(
        self,
        *,
        user_id: UserId,
        channel: NotificationChannel,
        payload: OtpNotification,
    ) -> DispatchReceipt:
        """
        POST one notification to the webhook.

        Args:
            user_id: Recipient account.
            channel: Delivery channel.
            payload: Code notification payload.
        Returns:
            DispatchReceipt: Receipt with provider reference from response `id`, if any.
        Assumptions:
            Webhook replies with a JSON object on success.
        Raises:
            DispatchError: On transport failure or non-2xx status.
        Side Effects:
            Performs one outbound HTTP request; emits logs and metrics hooks.
        """
        try:
            response = self._session.post(
                self._config.url,
                json=_request_body(user_id=user_id, channel=channel, payload=payload),
                headers=_request_headers(token=self._config.token),
                timeout=self._config.send_timeout_s,
            )
        except requests.RequestException as error:
            emit_hook(self._hooks.on_dispatch_error)
            log.warning(
                "security code webhook failed reason=transport channel=%s request_id=%s error=%s",
                channel.value,
                payload.request_id,
                type(error).__name__,
            )
            raise DispatchError(channel=channel, reason="transport_error") from error

        if not 200 <= response.status_code < 300:
            emit_hook(self._hooks.on_dispatch_error)
            log.warning(
                "security code webhook failed status_code=%s channel=%s request_id=%s body=%s",
                response.status_code,
                channel.value,
                payload.request_id,
                _response_excerpt(response=response),
            )
            raise DispatchError(channel=channel, reason=f"status_{response.status_code}")

        emit_hook(self._hooks.on_dispatch_sent)
        return DispatchReceipt(
            channel=channel,
            provider_reference=_provider_reference(response=response),
        )


def _request_body(
    *,
    user_id: UserId,
    channel: NotificationChannel,
    payload: OtpNotification,
) -> dict[str, Any]:
    return {
        "user_id": user_id.value,
        "channel": channel.value,
        "verification_type": payload.verification_type.value,
        "request_id": payload.request_id,
        "destination": payload.destination,
        "code": payload.code,
        "expires_at": payload.expires_at.isoformat(),
    }


def _request_headers(*, token: str | None) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if token is not None:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _provider_reference(*, response: WebhookHttpResponse) -> str | None:
    """
    Extract provider message id from JSON response.

    Args:
        response: HTTP response object.
    Returns:
        str | None: Value of `id` key, or `None` when body is not a JSON object.
    Assumptions:
        Delivery already succeeded; body parsing problems are not delivery failures.
    Raises:
        None.
    Side Effects:
        None.
    """
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("id") is not None:
        return str(body["id"])
    return None


def _response_excerpt(*, response: WebhookHttpResponse) -> str:
    text = response.text
    if not text:
        return ""
    return text[:300]
