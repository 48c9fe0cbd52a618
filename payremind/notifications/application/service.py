"""Notification service: scheduled passes, manual sends, retry, stats and log queries.

Storage failures never escape: they are logged and the affected operation
returns an empty or default result, so the scheduler keeps ticking.
Delivery failures come back from the dispatcher as failed records.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import timedelta, tzinfo
from decimal import Decimal

from payremind.exceptions import NotificationNotFoundError, OrderNotFoundError, StorageError
from payremind.notifications.domain.enums import Channel, LogOutcome, NotificationType
from payremind.notifications.domain.models import (
    DEFAULT_NOTIFICATION_SETTINGS,
    NotificationRecord,
    NotificationSettings,
    Order,
)
from payremind.notifications.domain.value_objects import (
    LogFilters,
    NotificationLogEntry,
    NotificationStats,
    PassSummary,
    RunSummary,
)
from payremind.notifications.infrastructure.repository import OrderRepository, SettingsRepository
from payremind.notifications.metrics import record_scheduler_pass
from payremind.utils.logging import (
    LogPerformance,
    clear_correlation_id,
    get_logger,
    set_correlation_id,
)

from .clock import Clock, to_zone
from .dispatcher import Dispatcher
from .notification_log import NotificationLog, find_failed, query_logs, records_on
from .selection import (
    due_reminder_sent_today,
    is_payable,
    overdue_slots,
    select_due_orders,
    select_overdue_orders,
)

logger = get_logger(__name__)


class NotificationService:
    """Payment reminder engine.

    Args:
        order_repository: Order storage collaborator
        settings_repository: Notification settings storage collaborator
        dispatcher: Renders and sends single reminders
        notification_log: Persists records onto orders
        clock: Source of the current time
        tz: Zone defining calendar days
        upcoming_days_default: Stats lead window when no settings are stored
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        settings_repository: SettingsRepository,
        dispatcher: Dispatcher,
        notification_log: NotificationLog,
        clock: Clock,
        tz: tzinfo,
        upcoming_days_default: int = 3,
    ) -> None:
        self.order_repository = order_repository
        self.settings_repository = settings_repository
        self.dispatcher = dispatcher
        self.notification_log = notification_log
        self.clock = clock
        self.tz = tz
        self.upcoming_days_default = upcoming_days_default

    # ------------------------------------------------------------------
    # Storage access
    # ------------------------------------------------------------------

    def _load_orders(self) -> list[Order] | None:
        try:
            return self.order_repository.load_orders()
        except StorageError as e:
            logger.error("orders_load_failed", error=str(e))
            return None

    def _load_settings(self) -> NotificationSettings | None:
        try:
            settings = self.settings_repository.load_settings()
        except StorageError as e:
            logger.error("notification_settings_load_failed", error=str(e))
            return None
        if settings is None:
            logger.warning("notification_settings_missing")
        return settings

    def _pass_inputs(
        self, summary: PassSummary
    ) -> tuple[list[Order], NotificationSettings] | None:
        settings = self._load_settings()
        orders = self._load_orders() if settings is not None else None
        if settings is None or orders is None:
            summary.aborted = True
            logger.warning(
                "reminder_pass_aborted", notification_type=summary.notification_type.value
            )
            return None
        return orders, settings

    async def _dispatch_and_log(
        self,
        order: Order,
        notification_type: NotificationType,
        channel: Channel,
        settings: NotificationSettings,
        summary: PassSummary,
    ) -> None:
        record = await self.dispatcher.send(order, notification_type, channel, settings)
        if record is None:
            return
        summary.record(record)
        outcome = self.notification_log.log_notification(order.id, record)
        if outcome is not LogOutcome.APPENDED:
            summary.log_failures += 1
            logger.warning(
                "notification_not_logged",
                order_id=order.id,
                notification_id=record.id,
                outcome=outcome.value,
            )

    # ------------------------------------------------------------------
    # Scheduled passes
    # ------------------------------------------------------------------

    async def send_due_reminders(self) -> PassSummary:
        """Send due reminders for orders inside the lead window.

        An order with a due reminder already dated today (any channel) is
        skipped for every channel.
        """
        summary = PassSummary(NotificationType.DUE_REMINDER)
        now = self.clock()
        inputs = self._pass_inputs(summary)
        if inputs is None:
            return summary
        orders, settings = inputs

        selected = select_due_orders(orders, settings, now, self.tz)
        summary.selected = len(selected)
        logger.info("due_reminders_selected", count=len(selected))

        channels = settings.enabled_channels()
        for order in selected:
            if due_reminder_sent_today(order, now, self.tz):
                summary.skipped += 1
                continue
            for channel in channels:
                await self._dispatch_and_log(
                    order, NotificationType.DUE_REMINDER, channel, settings, summary
                )

        return summary

    async def send_overdue_reminders(self) -> PassSummary:
        """Send overdue reminders, at most one fan-out per order per day.

        The channel fan-out is truncated so the order never holds more than
        ``max_overdue_reminders`` overdue records.
        """
        summary = PassSummary(NotificationType.OVERDUE_REMINDER)
        now = self.clock()
        inputs = self._pass_inputs(summary)
        if inputs is None:
            return summary
        orders, settings = inputs

        selected = select_overdue_orders(orders, now, self.tz)
        summary.selected = len(selected)
        logger.info("overdue_reminders_selected", count=len(selected))

        channels = settings.enabled_channels()
        for order in selected:
            slots = overdue_slots(order, settings, now, self.tz)
            if slots == 0:
                summary.skipped += 1
                continue
            for channel in channels[:slots]:
                await self._dispatch_and_log(
                    order, NotificationType.OVERDUE_REMINDER, channel, settings, summary
                )

        return summary

    async def _guarded_pass(
        self,
        notification_type: NotificationType,
        run: Callable[[], Awaitable[PassSummary]],
    ) -> PassSummary:
        try:
            return await run()
        except Exception as e:
            logger.error(
                "reminder_pass_failed",
                notification_type=notification_type.value,
                error=str(e),
                exc_info=True,
            )
            return PassSummary(notification_type, aborted=True)

    async def run_scheduled_notifications(self, trigger: str = "schedule") -> RunSummary:
        """Run the due pass then the overdue pass.

        A failure in one pass is logged and does not stop the other.

        Args:
            trigger: What started the run (startup, schedule, manual)
        """
        correlation_id = set_correlation_id()
        summary = RunSummary(started_at=self.clock())
        try:
            logger.info("notification_run_started", trigger=trigger, correlation_id=correlation_id)
            with LogPerformance("notification_run", logger):
                summary.due = await self._guarded_pass(
                    NotificationType.DUE_REMINDER, self.send_due_reminders
                )
                summary.overdue = await self._guarded_pass(
                    NotificationType.OVERDUE_REMINDER, self.send_overdue_reminders
                )

            aborted = summary.due.aborted or summary.overdue.aborted
            record_scheduler_pass(trigger, "failure" if aborted else "success")
            logger.info(
                "notification_run_finished",
                trigger=trigger,
                due_dispatched=summary.due.dispatched,
                overdue_dispatched=summary.overdue.dispatched,
                failed=summary.due.failed + summary.overdue.failed,
                log_failures=summary.due.log_failures + summary.overdue.log_failures,
            )
            return summary
        finally:
            clear_correlation_id()

    # ------------------------------------------------------------------
    # Manual operations
    # ------------------------------------------------------------------

    async def send_manual_reminder(
        self,
        order_id: str,
        notification_type: NotificationType,
        channel: Channel,
    ) -> NotificationRecord | None:
        """Send one reminder immediately, bypassing the selection rules.

        Returns:
            The record, or None when the order is unknown, settings are
            absent or the channel is disabled
        """
        settings = self._load_settings()
        if settings is None:
            return None

        orders = self._load_orders()
        if orders is None:
            return None

        order = next((o for o in orders if o.id == order_id), None)
        if order is None:
            logger.warning("manual_reminder_order_not_found", order_id=order_id)
            return None

        record = await self.dispatcher.send(order, notification_type, channel, settings)
        if record is None:
            return None

        outcome = self.notification_log.log_notification(order.id, record)
        logger.info(
            "manual_reminder_sent",
            order_id=order.id,
            notification_id=record.id,
            status=record.status.value,
            log_outcome=outcome.value,
        )
        return record

    async def retry_failed(self, notification_id: str) -> NotificationRecord | None:
        """Re-send a failed notification with its original type and channel.

        Raises:
            NotificationNotFoundError: If no record with that id has status failed
        """
        orders = self._load_orders() or []
        found = find_failed(orders, notification_id)
        if found is None:
            raise NotificationNotFoundError(notification_id)

        order, record = found
        logger.info(
            "retrying_notification",
            notification_id=notification_id,
            order_id=order.id,
            notification_type=record.type.value,
            channel=record.channel.value,
        )
        return await self.send_manual_reminder(order.id, record.type, record.channel)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_notification_stats(self) -> NotificationStats:
        """Outstanding totals and today's activity over the current collection."""
        now = to_zone(self.clock(), self.tz)
        orders = self._load_orders() or []
        settings = self._load_settings()
        upcoming_days = (
            settings.due_reminder_days if settings is not None else self.upcoming_days_default
        )
        horizon = now + timedelta(days=upcoming_days)

        total_due = Decimal("0")
        total_overdue = Decimal("0")
        upcoming = 0
        for order in orders:
            if not is_payable(order):
                continue
            due_date = to_zone(order.due_date, self.tz)
            if due_date > now:
                total_due += order.total_outstanding
                if due_date <= horizon:
                    upcoming += 1
            else:
                total_overdue += order.total_outstanding

        return NotificationStats(
            total_due=total_due,
            total_overdue=total_overdue,
            reminders_sent_today=records_on(orders, now.date(), self.tz),
            upcoming_reminders=upcoming,
        )

    def get_all_notification_logs(
        self, filters: LogFilters | None = None
    ) -> list[NotificationLogEntry]:
        """Every order's records, filtered and sorted newest first."""
        orders = self._load_orders() or []
        return query_logs(orders, filters or LogFilters(), self.tz)

    def get_order(self, order_id: str) -> Order:
        """Look up one order.

        Raises:
            OrderNotFoundError: If no order has that id
            StorageError: If the collection cannot be read
        """
        for order in self.order_repository.load_orders():
            if order.id == order_id:
                return order
        raise OrderNotFoundError(order_id)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def initialize_settings(self, force: bool = False) -> bool:
        """Store the default notification settings.

        Args:
            force: Overwrite settings that already exist

        Returns:
            True if settings were written
        """
        if not force and self.settings_repository.load_settings() is not None:
            logger.info("notification_settings_exist")
            return False
        self.settings_repository.save_settings(DEFAULT_NOTIFICATION_SETTINGS)
        return True
