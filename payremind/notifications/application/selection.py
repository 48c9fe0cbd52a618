"""Due and overdue selection rules.

Both rules take ``now`` fixed once at the start of a pass so every order in
the batch sees the same cutoff. Calendar-day checks ("already sent today")
use the configured zone.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime, timedelta, tzinfo

from payremind.notifications.domain.enums import NotificationType
from payremind.notifications.domain.models import NotificationSettings, Order

from .clock import to_zone
from .notification_log import count_of_type, sent_on

ONE_DAY = timedelta(days=1)


def days_until_due(due_date: datetime, now: datetime, tz: tzinfo) -> int:
    """Whole days until *due_date*, rounded up (a partial day counts as one)."""
    return math.ceil((to_zone(due_date, tz) - to_zone(now, tz)) / ONE_DAY)


def is_payable(order: Order) -> bool:
    """Unpaid with a positive balance and a due date."""
    return not order.is_paid and order.due_date is not None


def is_due_soon(order: Order, now: datetime, lead_days: int, tz: tzinfo) -> bool:
    if not is_payable(order):
        return False
    days = days_until_due(order.due_date, now, tz)
    return 0 < days <= lead_days


def is_overdue(order: Order, now: datetime, tz: tzinfo) -> bool:
    if not is_payable(order):
        return False
    return to_zone(order.due_date, tz) < to_zone(now, tz)


def select_due_orders(
    orders: Iterable[Order],
    settings: NotificationSettings,
    now: datetime,
    tz: tzinfo,
) -> list[Order]:
    """Orders inside the due reminder lead window."""
    return [o for o in orders if is_due_soon(o, now, settings.due_reminder_days, tz)]


def select_overdue_orders(orders: Iterable[Order], now: datetime, tz: tzinfo) -> list[Order]:
    """Orders whose due date has passed."""
    return [o for o in orders if is_overdue(o, now, tz)]


def due_reminder_sent_today(order: Order, now: datetime, tz: tzinfo) -> bool:
    """Any due reminder today, on any channel, skips the whole due fan-out."""
    return sent_on(order, NotificationType.DUE_REMINDER, to_zone(now, tz).date(), tz)


def overdue_slots(
    order: Order,
    settings: NotificationSettings,
    now: datetime,
    tz: tzinfo,
) -> int:
    """How many overdue records a scheduled pass may still add for *order*.

    Zero when the cap is reached or an overdue reminder already went out
    today. The cap counts records across all channels.
    """
    if sent_on(order, NotificationType.OVERDUE_REMINDER, to_zone(now, tz).date(), tz):
        return 0
    sent = count_of_type(order, NotificationType.OVERDUE_REMINDER)
    return max(settings.max_overdue_reminders - sent, 0)
