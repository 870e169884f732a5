from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

from storefront.contexts.security.domain.utc import ensure_utc_datetime
from storefront.contexts.security.domain.value_objects import VerificationType
from storefront.shared_kernel.primitives import UserId


class NotificationChannel(str, Enum):
    """
    NotificationChannel — outbound delivery channel for one-time codes.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    """

    EMAIL = "email"
    SMS = "sms"


@dataclass(frozen=True, slots=True)
class OtpNotification:
    """
    OtpNotification — payload describing one code delivery.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/use_cases/verification_request_manager.py
      - src/storefront/contexts/security/adapters/outbound/notifications/
        webhook_notification_dispatcher.py
    """

    request_id: int
    verification_type: VerificationType
    destination: str
    code: str
    expires_at: datetime

    def __post_init__(self) -> None:
        """
        Validate payload invariants.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Destination is the normalized value that the code proves ownership of.
        Raises:
            ValueError: If request id, destination or code are invalid.
        Side Effects:
            Normalizes `expires_at` to UTC.
        """
        if self.request_id <= 0:
            raise ValueError("OtpNotification.request_id must be > 0")
        if not self.destination.strip():
            raise ValueError("OtpNotification.destination must be non-empty")
        if not self.code.isdigit():
            raise ValueError("OtpNotification.code must be numeric")
        object.__setattr__(
            self,
            "expires_at",
            ensure_utc_datetime(value=self.expires_at, field_name="OtpNotification.expires_at"),
        )


@dataclass(frozen=True, slots=True)
class DispatchReceipt:
    """
    DispatchReceipt — confirmation that an outbound channel accepted a notification.
    """

    channel: NotificationChannel
    provider_reference: str | None = None


class DispatchError(RuntimeError):
    """
    DispatchError — outbound channel rejected or failed to deliver a notification.

    Related:
      - src/storefront/contexts/security/application/ports/notification_dispatcher.py
      - src/storefront/contexts/security/application/use_cases/security_errors.py
    """

    def __init__(self, *, channel: NotificationChannel, reason: str) -> None:
        super().__init__(f"{channel.value} dispatch failed: {reason}")
        self.channel = channel
        self.reason = reason


class NotificationDispatcher(Protocol):
    """
    NotificationDispatcher — порт доставки одноразовых кодов по email/SMS.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/adapters/outbound/notifications/
        log_only_notification_dispatcher.py
      - src/storefront/contexts/security/adapters/outbound/notifications/
        webhook_notification_dispatcher.py
    """

    def send(
        self,
        *,
        user_id: UserId,
        channel: NotificationChannel,
        payload: OtpNotification,
    ) -> DispatchReceipt:
        """
        Deliver one code notification.

        Args:
            user_id: Recipient account.
            channel: Delivery channel.
            payload: Code notification payload.
        Returns:
            DispatchReceipt: Delivery confirmation.
        Assumptions:
            One call performs at most one outbound delivery attempt.
        Raises:
            DispatchError: If the channel rejects or fails the delivery.
        Side Effects:
            Performs outbound I/O.
        """
        ...
