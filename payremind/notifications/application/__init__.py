"""Application layer: dispatch, selection, the notification log, the service and the scheduler."""

__all__ = [
    "ChannelSender",
    "ConsoleSender",
    "Dispatcher",
    "MessageFormat",
    "NotificationLog",
    "NotificationScheduler",
    "NotificationService",
    "SMTPConfig",
    "SMTPEmailSender",
    "WhatsAppCloudSender",
    "WhatsAppConfig",
    "render_template",
]

from .dispatcher import Dispatcher, MessageFormat
from .notification_log import NotificationLog
from .scheduler import NotificationScheduler
from .senders import (
    ChannelSender,
    ConsoleSender,
    SMTPConfig,
    SMTPEmailSender,
    WhatsAppCloudSender,
    WhatsAppConfig,
)
from .service import NotificationService
from .templates import render_template
