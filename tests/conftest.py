"""
Pytest configuration and global fixtures.

Provides in-memory storage collaborators, a controllable clock and recording
channel senders so the reminder engine can be exercised without touching
the filesystem or the network.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from payremind.exceptions import DeliveryError, StorageError
from payremind.notifications.application.dispatcher import Dispatcher, MessageFormat
from payremind.notifications.application.notification_log import NotificationLog
from payremind.notifications.application.senders import ChannelSender
from payremind.notifications.application.service import NotificationService
from payremind.notifications.domain.enums import (
    Channel,
    DeliveryStatus,
    FinancialStatus,
    NotificationType,
)
from payremind.notifications.domain.models import (
    DEFAULT_NOTIFICATION_SETTINGS,
    NotificationRecord,
    NotificationSettings,
    Order,
)
from payremind.notifications.domain.value_objects import OutboundMessage
from payremind.notifications.infrastructure.repository import OrderRepository, SettingsRepository

UTC = ZoneInfo("UTC")


class FixedClock:
    """Clock returning a settable instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class InMemoryOrderRepository(OrderRepository):
    """Order storage keeping deep copies, like a file round-trip would."""

    def __init__(self, orders: list[Order] | None = None):
        self._orders = [o.model_copy(deep=True) for o in orders or []]
        self.fail_load = False
        self.fail_save = False
        self.save_count = 0

    def load_orders(self) -> list[Order]:
        if self.fail_load:
            raise StorageError("orders unavailable", path="memory")
        return [o.model_copy(deep=True) for o in self._orders]

    def save_orders(self, orders: list[Order]) -> None:
        if self.fail_save:
            raise StorageError("orders read-only", path="memory")
        self.save_count += 1
        self._orders = [o.model_copy(deep=True) for o in orders]


class InMemorySettingsRepository(SettingsRepository):
    def __init__(self, settings: NotificationSettings | None = None):
        self.settings = settings
        self.fail_load = False

    def load_settings(self) -> NotificationSettings | None:
        if self.fail_load:
            raise StorageError("settings unavailable", path="memory")
        return self.settings

    def save_settings(self, settings: NotificationSettings) -> None:
        self.settings = settings


class RecordingSender(ChannelSender):
    """Collects messages and reports a fixed status, or raises."""

    def __init__(
        self,
        channel: Channel,
        status: DeliveryStatus = DeliveryStatus.SENT,
        error: Exception | None = None,
    ):
        self.channel = channel
        self.status = status
        self.error = error
        self.messages: list[OutboundMessage] = []

    async def send(self, message: OutboundMessage) -> DeliveryStatus:
        self.messages.append(message)
        if self.error is not None:
            raise self.error
        return self.status


def make_settings(
    *,
    email: bool = True,
    whatsapp: bool = False,
    due_reminder_days: int = 3,
    max_overdue_reminders: int = 3,
) -> NotificationSettings:
    settings = DEFAULT_NOTIFICATION_SETTINGS.model_copy(deep=True)
    settings.channels.email.enabled = email
    settings.channels.whatsapp.enabled = whatsapp
    settings.due_reminder_days = due_reminder_days
    settings.max_overdue_reminders = max_overdue_reminders
    return settings


def make_record(
    notification_type: NotificationType,
    timestamp: datetime,
    *,
    channel: Channel = Channel.EMAIL,
    status: DeliveryStatus = DeliveryStatus.SENT,
    record_id: str | None = None,
) -> NotificationRecord:
    return NotificationRecord(
        id=record_id or f"notif_{int(timestamp.timestamp() * 1000)}_{channel.value[:3]}",
        type=notification_type,
        channel=channel,
        status=status,
        timestamp=timestamp,
        message="reminder",
        error="smtp down" if status is DeliveryStatus.FAILED else None,
    )


@dataclass
class Engine:
    """A fully wired service over in-memory collaborators."""

    service: NotificationService
    orders: OrderRepository
    settings: InMemorySettingsRepository
    senders: dict[Channel, RecordingSender]
    clock: FixedClock
    log: NotificationLog

    def stored(self, order_id: str) -> Order:
        return next(o for o in self.orders.load_orders() if o.id == order_id)


@pytest.fixture
def now() -> datetime:
    """Reference instant: Monday 2024-06-10 09:00 UTC."""
    return datetime(2024, 6, 10, 9, 0, tzinfo=UTC)


@pytest.fixture
def clock(now: datetime) -> FixedClock:
    return FixedClock(now)


@pytest.fixture
def make_order(now: datetime):
    """Factory for orders due relative to the reference instant."""

    def _make(
        order_id: str = "1001",
        *,
        due_in_days: float | None = 2,
        outstanding: str = "150.00",
        financial_status: FinancialStatus = FinancialStatus.PENDING,
        log: list[NotificationRecord] | None = None,
        **fields,
    ) -> Order:
        due_date = now + timedelta(days=due_in_days) if due_in_days is not None else None
        data = {
            "id": order_id,
            "order_number": f"#{order_id}",
            "name": "Ada Lovelace",
            "email": "ada@example.com",
            "phone": "+15550001001",
            "due_date": due_date,
            "financial_status": financial_status,
            "total_outstanding": Decimal(outstanding),
            "notification_log": log or [],
        }
        data.update(fields)
        return Order(**data)

    return _make


@pytest.fixture
def build_engine(clock: FixedClock):
    """Factory wiring a NotificationService over in-memory collaborators."""

    def _build(
        orders: list[Order] | None = None,
        settings: NotificationSettings | None = None,
        *,
        email_status: DeliveryStatus = DeliveryStatus.DELIVERED,
        whatsapp_status: DeliveryStatus = DeliveryStatus.SENT,
        email_error: Exception | None = None,
        order_repository: OrderRepository | None = None,
    ) -> Engine:
        order_repo = order_repository or InMemoryOrderRepository(orders)
        settings_repo = InMemorySettingsRepository(settings)
        senders = {
            Channel.EMAIL: RecordingSender(Channel.EMAIL, email_status, email_error),
            Channel.WHATSAPP: RecordingSender(Channel.WHATSAPP, whatsapp_status),
        }
        dispatcher = Dispatcher(
            senders=senders,
            message_format=MessageFormat(store_name="Test Store"),
            clock=clock,
            tz=UTC,
        )
        log = NotificationLog(order_repo)
        service = NotificationService(
            order_repository=order_repo,
            settings_repository=settings_repo,
            dispatcher=dispatcher,
            notification_log=log,
            clock=clock,
            tz=UTC,
        )
        return Engine(
            service=service,
            orders=order_repo,
            settings=settings_repo,
            senders=senders,
            clock=clock,
            log=log,
        )

    return _build


@pytest.fixture
def smtp_failure() -> DeliveryError:
    return DeliveryError("SMTP delivery failed: connection refused", channel="email")


@pytest.fixture
def settings_factory():
    """Factory for notification settings derived from the defaults."""
    return make_settings


@pytest.fixture
def record_factory():
    """Factory for notification records."""
    return make_record
