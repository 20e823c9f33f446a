"""NotificationSink protocol - delivers formatted notifications."""

from __future__ import annotations

from typing import Protocol

from juicebox_notifier.models.records import DeliveryResult, Notification


class NotificationSink(Protocol):
    """Posts one message per notification to an external channel."""

    async def deliver(self, notification: Notification) -> DeliveryResult:
        """Deliver a notification. Failures are returned, not raised."""
        ...
