"""Append-only notification log stored on each order.

Appending is read-modify-write over the whole order collection, so it runs
under a lock shared by every caller in the process (scheduler worker threads
and manual sends). Reads never take the lock.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from datetime import date, tzinfo

from payremind.exceptions import StorageError
from payremind.notifications.domain.enums import DeliveryStatus, LogOutcome, NotificationType
from payremind.notifications.domain.models import NotificationRecord, Order
from payremind.notifications.domain.value_objects import LogFilters, NotificationLogEntry
from payremind.notifications.infrastructure.repository import OrderRepository
from payremind.notifications.metrics import record_log_append
from payremind.utils.logging import get_logger

from .clock import local_date, to_zone

logger = get_logger(__name__)


def count_of_type(order: Order, notification_type: NotificationType) -> int:
    return len(order.records_of_type(notification_type))


def sent_on(
    order: Order,
    notification_type: NotificationType,
    day: date,
    tz: tzinfo,
) -> bool:
    """Whether *order* has a record of *notification_type* dated *day* (any channel)."""
    return any(
        local_date(r.timestamp, tz) == day for r in order.records_of_type(notification_type)
    )


def records_on(orders: Iterable[Order], day: date, tz: tzinfo) -> int:
    """Number of records of any type dated *day* across *orders*."""
    return sum(
        1 for order in orders for r in order.notification_log if local_date(r.timestamp, tz) == day
    )


def query_logs(
    orders: Iterable[Order],
    filters: LogFilters,
    tz: tzinfo,
) -> list[NotificationLogEntry]:
    """Flatten every order's log, apply *filters* and sort newest first."""
    date_from = to_zone(filters.date_from, tz) if filters.date_from else None
    date_to = to_zone(filters.date_to, tz) if filters.date_to else None

    entries: list[NotificationLogEntry] = []
    for order in orders:
        for record in order.notification_log:
            timestamp = to_zone(record.timestamp, tz)
            if date_from is not None and timestamp < date_from:
                continue
            if date_to is not None and timestamp > date_to:
                continue
            if filters.type is not None and record.type is not filters.type:
                continue
            if filters.channel is not None and record.channel is not filters.channel:
                continue
            if filters.status is not None and record.status is not filters.status:
                continue
            entries.append(
                NotificationLogEntry(
                    record=record,
                    order_id=order.id,
                    order_number=order.order_number,
                    customer_name=order.name,
                )
            )

    entries.sort(key=lambda e: to_zone(e.timestamp, tz), reverse=True)
    return entries


def find_failed(
    orders: Iterable[Order], notification_id: str
) -> tuple[Order, NotificationRecord] | None:
    """Locate a *failed* record by id. Records in any other status never match."""
    for order in orders:
        record = order.find_record(notification_id)
        if record is not None and record.status is DeliveryStatus.FAILED:
            return order, record
    return None


class NotificationLog:
    """Persists dispatch records onto their orders.

    Args:
        repository: Order storage collaborator
        lock: Mutual-exclusion scope for appends (one per process)
    """

    def __init__(self, repository: OrderRepository, lock: threading.Lock | None = None) -> None:
        self.repository = repository
        self._lock = lock or threading.Lock()

    def log_notification(self, order_id: str, record: NotificationRecord) -> LogOutcome:
        """Append *record* to the log of order *order_id* and save the collection.

        Returns:
            APPENDED on success, ORDER_NOT_FOUND when no order has that id,
            STORAGE_FAILED when the collection cannot be read or written
        """
        with self._lock:
            try:
                orders = self.repository.load_orders()
                order = next((o for o in orders if o.id == order_id), None)
                if order is None:
                    outcome = LogOutcome.ORDER_NOT_FOUND
                else:
                    order.notification_log.append(record)
                    self.repository.save_orders(orders)
                    outcome = LogOutcome.APPENDED
            except StorageError as e:
                logger.error(
                    "notification_log_append_failed",
                    order_id=order_id,
                    notification_id=record.id,
                    error=str(e),
                )
                outcome = LogOutcome.STORAGE_FAILED

        record_log_append(outcome.value)
        if outcome is LogOutcome.ORDER_NOT_FOUND:
            logger.warning(
                "notification_log_order_not_found", order_id=order_id, notification_id=record.id
            )
        return outcome
