from __future__ import annotations

import logging

from storefront.contexts.security.application.ports import (
    DispatchReceipt,
    NotificationChannel,
    NotificationDispatcher,
    OtpNotification,
    emit_hook,
)
from storefront.shared_kernel.primitives import UserId

from .notification_dispatcher_hooks import NotificationDispatcherHooks

log = logging.getLogger(__name__)


class LogOnlyNotificationDispatcher(NotificationDispatcher):
    """
    LogOnlyNotificationDispatcher — dev/test adapter that logs code notifications without sending.

    The code itself is logged so that local flows can be completed by hand; never wire this
    adapter in prod.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/notification_dispatcher.py
      - apps/api/wiring/modules/security.py
      - configs/dev/security.yaml
    """

    def __init__(self, *, hooks: NotificationDispatcherHooks | None = None) -> None:
        self._hooks = hooks if hooks is not None else NotificationDispatcherHooks()

    def send(
        self,
        *,
        user_id: UserId,
        channel: NotificationChannel,
        payload: OtpNotification,
    ) -> DispatchReceipt:
        """
        Log notification payload.

        Args:
            user_id: Recipient account.
            channel: Delivery channel.
            payload: Code notification payload.
        Returns:
            DispatchReceipt: Receipt without provider reference.
        Assumptions:
            Used only in dev/test environments.
        Raises:
            None.
        Side Effects:
            Emits one info log record and optional metrics hook.
        """
        log.info(
            (
                "security code notification channel=%s user_id=%s request_id=%s "
                "destination=%s code=%s expires_at=%s"
            ),
            channel.value,
            user_id,
            payload.request_id,
            payload.destination,
            payload.code,
            payload.expires_at.isoformat(),
        )
        emit_hook(self._hooks.on_dispatch_sent)
        return DispatchReceipt(channel=channel)
