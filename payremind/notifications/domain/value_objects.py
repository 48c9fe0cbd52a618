"""Value objects for the reminder engine.

Immutable where they describe a fact (an outgoing message, a log entry);
plain dataclasses where a pass accumulates counters.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from .enums import Channel, DeliveryStatus, NotificationType
from .models import NotificationRecord


@dataclass(frozen=True)
class OutboundMessage:
    """Rendered message handed to a channel sender."""

    order_id: str
    notification_type: NotificationType
    channel: Channel
    recipient: str
    body: str
    subject: str | None = None


@dataclass(frozen=True)
class LogFilters:
    """Filters for notification log queries. ``None`` means no filter.

    ``date_from`` and ``date_to`` are inclusive bounds on the record timestamp.
    """

    date_from: datetime | None = None
    date_to: datetime | None = None
    type: NotificationType | None = None
    channel: Channel | None = None
    status: DeliveryStatus | None = None


@dataclass(frozen=True)
class NotificationLogEntry:
    """A notification record decorated with its order's identity."""

    record: NotificationRecord
    order_id: str
    order_number: str | None
    customer_name: str | None

    @property
    def timestamp(self) -> datetime:
        return self.record.timestamp

    def to_dict(self) -> dict[str, Any]:
        data = self.record.to_json()
        data.update(
            orderId=self.order_id,
            orderNumber=self.order_number,
            customerName=self.customer_name,
        )
        return data


@dataclass(frozen=True)
class NotificationStats:
    """Dashboard figures computed over the order collection at call time."""

    total_due: Decimal = Decimal("0")
    total_overdue: Decimal = Decimal("0")
    reminders_sent_today: int = 0
    upcoming_reminders: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalDue": float(self.total_due),
            "totalOverdue": float(self.total_overdue),
            "remindersSentToday": self.reminders_sent_today,
            "upcomingReminders": self.upcoming_reminders,
        }


@dataclass
class PassSummary:
    """Counters for one due or overdue pass."""

    notification_type: NotificationType
    selected: int = 0
    skipped: int = 0
    dispatched: int = 0
    failed: int = 0
    log_failures: int = 0
    aborted: bool = False

    def record(self, record: NotificationRecord) -> None:
        self.dispatched += 1
        if record.is_failed:
            self.failed += 1


@dataclass
class RunSummary:
    """Result of a full due + overdue run."""

    started_at: datetime
    due: PassSummary = field(
        default_factory=lambda: PassSummary(NotificationType.DUE_REMINDER)
    )
    overdue: PassSummary = field(
        default_factory=lambda: PassSummary(NotificationType.OVERDUE_REMINDER)
    )

    @property
    def dispatched(self) -> int:
        return self.due.dispatched + self.overdue.dispatched


@dataclass(frozen=True)
class SchedulerStatus:
    is_running: bool
    next_run: datetime
    last_run: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "isRunning": self.is_running,
            "nextRun": self.next_run.isoformat(),
            "lastRun": self.last_run.isoformat() if self.last_run else None,
        }
