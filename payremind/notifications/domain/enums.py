"""Domain enums for payment reminder notifications."""

from enum import Enum


class FinancialStatus(str, Enum):
    """Payment state of an order."""

    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    REFUNDED = "refunded"

    def __str__(self) -> str:
        return self.value


class NotificationType(str, Enum):
    """Kind of reminder.

    DUE_REMINDER is sent inside the lead window before the due date,
    OVERDUE_REMINDER after the due date has passed.
    """

    DUE_REMINDER = "due_reminder"
    OVERDUE_REMINDER = "overdue_reminder"

    def __str__(self) -> str:
        return self.value


class Channel(str, Enum):
    """Delivery channel."""

    EMAIL = "email"
    WHATSAPP = "whatsapp"

    def __str__(self) -> str:
        return self.value


class DeliveryStatus(str, Enum):
    """Outcome of a dispatch attempt.

    Email reports SENT/DELIVERED/FAILED; WhatsApp may also report SEEN.
    """

    SENT = "sent"
    DELIVERED = "delivered"
    SEEN = "seen"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value

    @property
    def is_success(self) -> bool:
        return self is not DeliveryStatus.FAILED


class LogOutcome(str, Enum):
    """Result of appending a record to an order's notification log."""

    APPENDED = "appended"
    ORDER_NOT_FOUND = "order_not_found"
    STORAGE_FAILED = "storage_failed"

    def __str__(self) -> str:
        return self.value
