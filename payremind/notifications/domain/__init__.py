"""Domain layer: orders, notification records, settings and value objects."""

from .enums import Channel, DeliveryStatus, FinancialStatus, LogOutcome, NotificationType
from .models import (
    DEFAULT_NOTIFICATION_SETTINGS,
    ChannelSettings,
    ChannelToggle,
    EmailTemplate,
    EmailTemplates,
    NotificationRecord,
    NotificationSettings,
    NotificationTemplates,
    Order,
    WhatsAppTemplates,
)
from .value_objects import (
    LogFilters,
    NotificationLogEntry,
    NotificationStats,
    OutboundMessage,
    PassSummary,
    RunSummary,
    SchedulerStatus,
)

__all__ = [
    "Channel",
    "DeliveryStatus",
    "FinancialStatus",
    "LogOutcome",
    "NotificationType",
    "DEFAULT_NOTIFICATION_SETTINGS",
    "ChannelSettings",
    "ChannelToggle",
    "EmailTemplate",
    "EmailTemplates",
    "NotificationRecord",
    "NotificationSettings",
    "NotificationTemplates",
    "Order",
    "WhatsAppTemplates",
    "LogFilters",
    "NotificationLogEntry",
    "NotificationStats",
    "OutboundMessage",
    "PassSummary",
    "RunSummary",
    "SchedulerStatus",
]
