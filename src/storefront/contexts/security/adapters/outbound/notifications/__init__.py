from .log_only_notification_dispatcher import LogOnlyNotificationDispatcher
from .notification_dispatcher_hooks import NotificationDispatcherHooks
from .webhook_notification_dispatcher import (
    WebhookNotificationDispatcher,
    WebhookNotificationDispatcherConfig,
)

__all__ = [
    "LogOnlyNotificationDispatcher",
    "NotificationDispatcherHooks",
    "WebhookNotificationDispatcher",
    "WebhookNotificationDispatcherConfig",
]
