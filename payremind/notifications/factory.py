"""Factory functions wiring the reminder engine from configuration.

Example:
    >>> from payremind.notifications.factory import build_notification_service, build_scheduler
    >>> service = build_notification_service()
    >>> scheduler = build_scheduler(service=service)
    >>> scheduler.start()
"""

from payremind.exceptions import ConfigurationError
from payremind.notifications.application.clock import Clock, system_clock
from payremind.notifications.application.dispatcher import Dispatcher, MessageFormat
from payremind.notifications.application.notification_log import NotificationLog
from payremind.notifications.application.scheduler import NotificationScheduler
from payremind.notifications.application.senders import (
    ChannelSender,
    ConsoleSender,
    SMTPConfig,
    SMTPEmailSender,
    WhatsAppCloudSender,
    WhatsAppConfig,
)
from payremind.notifications.application.service import NotificationService
from payremind.notifications.domain.enums import Channel
from payremind.notifications.infrastructure.repository import (
    JsonOrderRepository,
    JsonSettingsRepository,
)
from payremind.utils.config import Settings, get_settings
from payremind.utils.logging import get_logger

logger = get_logger(__name__)


def build_senders(settings: Settings) -> dict[Channel, ChannelSender]:
    """Create one sender per channel for the configured transport.

    With ``live`` transport and no WhatsApp credentials, WhatsApp has no
    sender and its dispatches are recorded as failed.

    Raises:
        ConfigurationError: If only one of the WhatsApp credentials is set
    """
    if settings.transport == "console":
        return {channel: ConsoleSender(channel) for channel in Channel}

    has_number = bool(settings.whatsapp_phone_number_id)
    has_token = bool(settings.whatsapp_token)
    if has_number != has_token:
        raise ConfigurationError(
            "WhatsApp Cloud API needs both a phone number id and a token",
            setting="whatsapp_phone_number_id" if not has_number else "whatsapp_token",
        )

    smtp = SMTPConfig(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        sender=settings.smtp_sender,
    )
    senders: dict[Channel, ChannelSender] = {Channel.EMAIL: SMTPEmailSender(smtp)}

    if has_number and has_token:
        whatsapp = WhatsAppConfig(
            phone_number_id=settings.whatsapp_phone_number_id,
            token=settings.whatsapp_token,
            api_base=settings.whatsapp_api_base,
            timeout=settings.whatsapp_timeout_seconds,
        )
        senders[Channel.WHATSAPP] = WhatsAppCloudSender(whatsapp)
    else:
        logger.warning("whatsapp_sender_unconfigured")

    return senders


def build_notification_service(
    settings: Settings | None = None,
    clock: Clock | None = None,
) -> NotificationService:
    """Build the service over the JSON data files named in *settings*."""
    settings = settings or get_settings()
    tz = settings.tzinfo
    clock = clock or system_clock(tz)

    order_repository = JsonOrderRepository(settings.orders_path)
    dispatcher = Dispatcher(
        senders=build_senders(settings),
        message_format=MessageFormat(
            store_name=settings.store_name,
            payment_link_base=settings.payment_link_base,
            currency_symbol=settings.currency_symbol,
            due_date_format=settings.due_date_format,
        ),
        clock=clock,
        tz=tz,
    )

    logger.debug(
        "notification_service_built",
        transport=settings.transport,
        data_dir=str(settings.data_dir),
        timezone=settings.timezone,
    )

    return NotificationService(
        order_repository=order_repository,
        settings_repository=JsonSettingsRepository(settings.notification_settings_path),
        dispatcher=dispatcher,
        notification_log=NotificationLog(order_repository),
        clock=clock,
        tz=tz,
        upcoming_days_default=settings.stats_upcoming_days_default,
    )


def build_scheduler(
    settings: Settings | None = None,
    service: NotificationService | None = None,
) -> NotificationScheduler:
    """Build the process scheduler. The caller owns the returned object."""
    settings = settings or get_settings()
    service = service or build_notification_service(settings)
    return NotificationScheduler(
        service,
        hour=settings.scheduler_hour,
        minute=settings.scheduler_minute,
        poll_interval_seconds=settings.poll_interval_seconds,
    )
