"""Domain models for payment reminders.

Entities are pydantic models so that the JSON collections owned by the
storage collaborators validate on load. Field names are snake_case in Python
and camelCase on disk (``dueDate``, ``notificationLog``...).

Order is owned by order storage: unknown fields are kept (``extra="allow"``)
so writing the collection back never drops data the core does not use.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .enums import Channel, DeliveryStatus, FinancialStatus, NotificationType


class CamelModel(BaseModel):
    """Base model reading and writing camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NotificationRecord(CamelModel):
    """One dispatch attempt stored in an order's notification log.

    Immutable once created: the log is append-only.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    type: NotificationType
    channel: Channel
    status: DeliveryStatus
    timestamp: datetime
    message: str = ""
    subject: str | None = None
    recipient: str | None = None
    error: str | None = None

    @model_validator(mode="after")
    def error_only_when_failed(self) -> "NotificationRecord":
        if self.error is not None and self.status is not DeliveryStatus.FAILED:
            raise ValueError("error is only allowed on failed notifications")
        return self

    @property
    def is_failed(self) -> bool:
        return self.status is DeliveryStatus.FAILED

    def to_json(self) -> dict[str, Any]:
        """Serialize for storage, omitting fields the channel does not use."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Order(CamelModel):
    """Order with an outstanding balance.

    Attributes:
        id: Unique order identifier (numeric ids are matched as strings)
        order_number: Human-facing order number used in messages
        name: Customer name
        email: Email recipient
        phone: WhatsApp recipient (falls back to name when absent)
        due_date: Payment due date; None means never due
        financial_status: Payment state
        total_outstanding: Amount still owed; zero means fully paid
        notification_log: Append-only history of dispatch attempts
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    order_number: str | None = None
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    due_date: datetime | None = None
    financial_status: FinancialStatus = FinancialStatus.PENDING
    total_outstanding: Decimal = Field(default=Decimal("0"), ge=0)
    notification_log: list[NotificationRecord] = Field(default_factory=list)

    @field_validator("id", "order_number", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any) -> Any:
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("notification_log", mode="before")
    @classmethod
    def default_log(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_serializer("total_outstanding")
    def serialize_amount(self, v: Decimal) -> float:
        return float(v)

    @property
    def is_paid(self) -> bool:
        """Paid status or zero balance excludes the order from reminders."""
        return self.financial_status is FinancialStatus.PAID or self.total_outstanding <= 0

    def records_of_type(self, notification_type: NotificationType) -> list[NotificationRecord]:
        return [r for r in self.notification_log if r.type is notification_type]

    def find_record(self, notification_id: str) -> NotificationRecord | None:
        for record in self.notification_log:
            if record.id == notification_id:
                return record
        return None

    def to_json(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude={"notification_log"})
        data["notificationLog"] = [r.to_json() for r in self.notification_log]
        return data


# =============================================================================
# Notification settings
# =============================================================================


class ChannelToggle(CamelModel):
    enabled: bool = False


class ChannelSettings(CamelModel):
    email: ChannelToggle = Field(default_factory=ChannelToggle)
    whatsapp: ChannelToggle = Field(default_factory=ChannelToggle)


class EmailTemplate(CamelModel):
    subject: str
    body: str


class EmailTemplates(CamelModel):
    due_reminder: EmailTemplate
    overdue_reminder: EmailTemplate


class WhatsAppTemplates(CamelModel):
    due_reminder: str
    overdue_reminder: str


class NotificationTemplates(CamelModel):
    email: EmailTemplates
    whatsapp: WhatsAppTemplates


class NotificationSettings(CamelModel):
    """Channel enablement, reminder windows and templates.

    Attributes:
        due_reminder_days: Lead window in days before the due date
        max_overdue_reminders: Cap on overdue records per order (all channels)
        channels: Enablement flag per channel
        templates: Message templates per channel and reminder type
    """

    due_reminder_days: int = Field(default=3, ge=0)
    max_overdue_reminders: int = Field(default=3, ge=1)
    channels: ChannelSettings = Field(default_factory=ChannelSettings)
    templates: NotificationTemplates

    def is_channel_enabled(self, channel: Channel) -> bool:
        toggle: ChannelToggle = getattr(self.channels, channel.value)
        return toggle.enabled

    def enabled_channels(self) -> list[Channel]:
        """Enabled channels in fan-out order (email first)."""
        return [c for c in (Channel.EMAIL, Channel.WHATSAPP) if self.is_channel_enabled(c)]

    def email_template(self, notification_type: NotificationType) -> EmailTemplate:
        return getattr(self.templates.email, notification_type.value)

    def whatsapp_template(self, notification_type: NotificationType) -> str:
        return getattr(self.templates.whatsapp, notification_type.value)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


DEFAULT_NOTIFICATION_SETTINGS = NotificationSettings(
    due_reminder_days=3,
    max_overdue_reminders=3,
    channels=ChannelSettings(
        email=ChannelToggle(enabled=True),
        whatsapp=ChannelToggle(enabled=False),
    ),
    templates=NotificationTemplates(
        email=EmailTemplates(
            due_reminder=EmailTemplate(
                subject="Payment Reminder - Order {{order_number}}",
                body=(
                    "Dear {{customer_name}},\n\n"
                    "This is a friendly reminder that payment of {{amount_due}} for order "
                    "{{order_number}} is due on {{due_date}}.\n\n"
                    "You can pay securely here: {{payment_link}}\n\n"
                    "Thank you for your business.\n\n"
                    "Best regards,\n{{store_name}}"
                ),
            ),
            overdue_reminder=EmailTemplate(
                subject="Overdue Payment - Order {{order_number}}",
                body=(
                    "Dear {{customer_name}},\n\n"
                    "Our records show that payment of {{amount_due}} for order "
                    "{{order_number}} was due on {{due_date}} and is now overdue.\n\n"
                    "Please complete your payment as soon as possible: {{payment_link}}\n\n"
                    "If you have already paid, please disregard this message.\n\n"
                    "Best regards,\n{{store_name}}"
                ),
            ),
        ),
        whatsapp=WhatsAppTemplates(
            due_reminder=(
                "Hi {{customer_name}}, a reminder that {{amount_due}} for order "
                "{{order_number}} is due on {{due_date}}. Pay here: {{payment_link}}"
            ),
            overdue_reminder=(
                "Hi {{customer_name}}, payment of {{amount_due}} for order "
                "{{order_number}} was due on {{due_date}} and is overdue. "
                "Pay here: {{payment_link}}"
            ),
        ),
    ),
)
