"""Reminder dispatcher: render, send and describe one notification.

The dispatcher never persists anything. It returns a ``NotificationRecord``
and the caller appends it through ``NotificationLog`` so that a failed
append can be told apart from a failed delivery.

Transport failures never escape ``send``: they become records with
``status="failed"`` and an ``error`` message.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, tzinfo
from decimal import ROUND_HALF_UP, Decimal

from payremind.exceptions import DeliveryError
from payremind.notifications.domain.enums import Channel, DeliveryStatus, NotificationType
from payremind.notifications.domain.models import NotificationRecord, NotificationSettings, Order
from payremind.notifications.domain.value_objects import OutboundMessage
from payremind.notifications.metrics import record_dispatch
from payremind.utils.logging import get_logger, log_notification_dispatched

from .clock import Clock, to_zone
from .senders import ChannelSender
from .templates import render_template

logger = get_logger(__name__)

CENT = Decimal("0.01")


@dataclass(frozen=True)
class MessageFormat:
    """Store-wide values used to fill templates."""

    store_name: str = "Your Store"
    payment_link_base: str = "https://yourstore.com/pay"
    currency_symbol: str = "$"
    due_date_format: str = "%m/%d/%Y"


def generate_notification_id(now: datetime) -> str:
    """Unique id of the form ``notif_<epoch ms>_<9 hex chars>``."""
    return f"notif_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"


class Dispatcher:
    """Select the channel sender, render the template and record the outcome.

    Args:
        senders: Transport for each channel
        message_format: Store-wide template values
        clock: Source of the current time (timezone-aware)
        tz: Zone used to format due dates
    """

    def __init__(
        self,
        senders: Mapping[Channel, ChannelSender],
        message_format: MessageFormat,
        clock: Clock,
        tz: tzinfo,
    ) -> None:
        self.senders = dict(senders)
        self.message_format = message_format
        self.clock = clock
        self.tz = tz

    def build_template_data(self, order: Order) -> dict[str, str]:
        """Placeholder values for *order*."""
        fmt = self.message_format
        amount = order.total_outstanding.quantize(CENT, rounding=ROUND_HALF_UP)
        due_date = (
            to_zone(order.due_date, self.tz).strftime(fmt.due_date_format) if order.due_date else ""
        )
        return {
            "customer_name": order.name or "",
            "order_number": order.order_number or order.id,
            "amount_due": f"{fmt.currency_symbol}{amount}",
            "due_date": due_date,
            "payment_link": f"{fmt.payment_link_base}/{order.id}",
            "store_name": fmt.store_name,
        }

    @staticmethod
    def recipient_for(order: Order, channel: Channel) -> str:
        if channel is Channel.EMAIL:
            return order.email or ""
        return order.phone or order.name or ""

    def render(
        self,
        settings: NotificationSettings,
        notification_type: NotificationType,
        channel: Channel,
        data: Mapping[str, str],
    ) -> tuple[str | None, str]:
        """Return (subject, body); subject is None outside email."""
        if channel is Channel.EMAIL:
            template = settings.email_template(notification_type)
            return render_template(template.subject, data), render_template(template.body, data)
        return None, render_template(settings.whatsapp_template(notification_type), data)

    async def send(
        self,
        order: Order,
        notification_type: NotificationType,
        channel: Channel,
        settings: NotificationSettings,
    ) -> NotificationRecord | None:
        """Dispatch one reminder for *order* on *channel*.

        Returns:
            The resulting record, or None when the channel is disabled
        """
        if not settings.is_channel_enabled(channel):
            logger.warning(
                "dispatch_skipped_channel_disabled",
                order_id=order.id,
                channel=channel.value,
                notification_type=notification_type.value,
            )
            return None

        timestamp = self.clock()
        data = self.build_template_data(order)
        subject, body = self.render(settings, notification_type, channel, data)
        recipient = self.recipient_for(order, channel)
        message = OutboundMessage(
            order_id=order.id,
            notification_type=notification_type,
            channel=channel,
            recipient=recipient,
            body=body,
            subject=subject,
        )

        error: str | None = None
        try:
            sender = self.senders.get(channel)
            if sender is None:
                raise DeliveryError("No sender configured", channel=channel.value)
            status = await sender.send(message)
            if status is DeliveryStatus.FAILED:
                error = "Transport reported delivery failure"
        except Exception as e:
            logger.error(
                "dispatch_failed",
                order_id=order.id,
                channel=channel.value,
                notification_type=notification_type.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            status = DeliveryStatus.FAILED
            error = str(e) or type(e).__name__

        record = NotificationRecord(
            id=generate_notification_id(timestamp),
            type=notification_type,
            channel=channel,
            status=status,
            timestamp=timestamp,
            message=body,
            subject=subject,
            recipient=recipient,
            error=error,
        )

        record_dispatch(notification_type.value, channel.value, status.value)
        log_notification_dispatched(
            logger,
            order_id=order.id,
            notification_id=record.id,
            notification_type=notification_type.value,
            channel=channel.value,
            status=status.value,
        )
        return record
