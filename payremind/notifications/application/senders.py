"""Channel senders: the transport behind each notification channel.

A sender receives a rendered ``OutboundMessage`` and reports a
``DeliveryStatus``. Transport problems are raised (``DeliveryError`` or the
underlying library error); the dispatcher turns them into failed records.

Available senders:
- ConsoleSender: logs the message instead of delivering it (default transport)
- SMTPEmailSender: email over SMTP with STARTTLS
- WhatsAppCloudSender: WhatsApp text messages via the Meta Cloud API
"""

from __future__ import annotations

import asyncio
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.mime.text import MIMEText

import httpx

from payremind.exceptions import DeliveryError
from payremind.notifications.domain.enums import Channel, DeliveryStatus
from payremind.notifications.domain.value_objects import OutboundMessage
from payremind.utils.logging import get_logger

logger = get_logger(__name__)


class ChannelSender(ABC):
    """Transport for one channel."""

    channel: Channel

    @abstractmethod
    async def send(self, message: OutboundMessage) -> DeliveryStatus:
        """Deliver *message* and return the reported status.

        Raises:
            DeliveryError: If the transport rejects the message
        """


class ConsoleSender(ChannelSender):
    """Log messages instead of delivering them.

    Used in development and as the default transport. Email reports
    ``delivered``, WhatsApp reports ``sent``.
    """

    _DEFAULT_STATUS = {
        Channel.EMAIL: DeliveryStatus.DELIVERED,
        Channel.WHATSAPP: DeliveryStatus.SENT,
    }

    def __init__(self, channel: Channel, status: DeliveryStatus | None = None) -> None:
        self.channel = channel
        self.status = status or self._DEFAULT_STATUS[channel]

    async def send(self, message: OutboundMessage) -> DeliveryStatus:
        logger.info(
            "console_message",
            channel=self.channel.value,
            order_id=message.order_id,
            recipient=message.recipient,
            subject=message.subject,
            body=message.body,
        )
        return self.status


@dataclass(frozen=True)
class SMTPConfig:
    """SMTP connection settings."""

    host: str
    port: int = 587
    username: str | None = None
    password: str | None = None
    use_tls: bool = True
    sender: str = "billing@yourstore.com"
    timeout: float = 30.0


class SMTPEmailSender(ChannelSender):
    """Send reminder emails through an SMTP relay.

    smtplib is blocking, so delivery runs in a worker thread.
    """

    channel = Channel.EMAIL

    def __init__(self, config: SMTPConfig) -> None:
        self.config = config

    def _build(self, message: OutboundMessage) -> MIMEText:
        mime = MIMEText(message.body, "plain", "utf-8")
        mime["Subject"] = message.subject or ""
        mime["From"] = self.config.sender
        mime["To"] = message.recipient
        return mime

    def _deliver(self, mime: MIMEText, recipient: str) -> None:
        config = self.config
        with smtplib.SMTP(config.host, config.port, timeout=config.timeout) as server:
            if config.use_tls:
                server.starttls()
            if config.username and config.password:
                server.login(config.username, config.password)
            server.sendmail(config.sender, [recipient], mime.as_string())

    async def send(self, message: OutboundMessage) -> DeliveryStatus:
        if not message.recipient:
            raise DeliveryError("Order has no email address", channel=self.channel.value)

        mime = self._build(message)
        try:
            await asyncio.to_thread(self._deliver, mime, message.recipient)
        except smtplib.SMTPException as e:
            raise DeliveryError(
                f"SMTP delivery failed: {e}", channel=self.channel.value, original_error=e
            ) from e

        logger.info("email_sent", order_id=message.order_id)
        return DeliveryStatus.SENT


@dataclass(frozen=True)
class WhatsAppConfig:
    """Meta WhatsApp Cloud API settings."""

    phone_number_id: str
    token: str
    api_base: str = "https://graph.facebook.com/v19.0"
    timeout: float = 10.0


class WhatsAppCloudSender(ChannelSender):
    """Send WhatsApp text messages through the Meta Cloud API."""

    channel = Channel.WHATSAPP

    def __init__(self, config: WhatsAppConfig, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._client = client

    @property
    def endpoint(self) -> str:
        return f"{self.config.api_base.rstrip('/')}/{self.config.phone_number_id}/messages"

    async def send(self, message: OutboundMessage) -> DeliveryStatus:
        if not message.recipient:
            raise DeliveryError("Order has no WhatsApp recipient", channel=self.channel.value)

        payload = {
            "messaging_product": "whatsapp",
            "to": message.recipient,
            "type": "text",
            "text": {"body": message.body},
        }
        headers = {"Authorization": f"Bearer {self.config.token}"}

        if self._client is not None:
            response = await self._client.post(self.endpoint, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                response = await client.post(self.endpoint, json=payload, headers=headers)

        if response.is_error:
            raise DeliveryError(
                f"WhatsApp API returned {response.status_code}",
                channel=self.channel.value,
                status_code=response.status_code,
            )

        logger.info("whatsapp_sent", order_id=message.order_id)
        return DeliveryStatus.SENT


__all__ = [
    "ChannelSender",
    "ConsoleSender",
    "SMTPConfig",
    "SMTPEmailSender",
    "WhatsAppConfig",
    "WhatsAppCloudSender",
]
