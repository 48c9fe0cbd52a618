"""Tests for NotificationService: scheduled passes, manual sends, retry, stats, log queries."""

import json
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from payremind.exceptions import NotificationNotFoundError, OrderNotFoundError
from payremind.notifications.domain.enums import (
    Channel,
    DeliveryStatus,
    FinancialStatus,
    NotificationType,
)
from payremind.notifications.domain.value_objects import LogFilters
from payremind.notifications.infrastructure.repository import JsonOrderRepository

pytestmark = pytest.mark.unit


def records(order, notification_type):
    return order.records_of_type(notification_type)


class TestDueReminders:
    """Tests for the scheduled due pass."""

    @pytest.mark.asyncio
    async def test_due_in_two_days_sends_one_email(
        self, build_engine, make_order, settings_factory
    ):
        """Order due in 2 days, email only, nothing sent today: one email record."""
        engine = build_engine(
            [make_order("1001", due_in_days=2)],
            settings_factory(due_reminder_days=3, email=True, whatsapp=False),
        )

        summary = await engine.service.send_due_reminders()

        log = engine.stored("1001").notification_log
        assert len(log) == 1
        record = log[0]
        assert record.type is NotificationType.DUE_REMINDER
        assert record.channel is Channel.EMAIL
        assert record.status.is_success or (record.is_failed and record.error)
        assert summary.selected == 1
        assert summary.dispatched == 1

    @pytest.mark.asyncio
    async def test_failed_email_still_logged_with_error(
        self, build_engine, make_order, settings_factory, smtp_failure
    ):
        engine = build_engine(
            [make_order("1001", due_in_days=2)], settings_factory(), email_error=smtp_failure
        )

        summary = await engine.service.send_due_reminders()

        record = engine.stored("1001").notification_log[0]
        assert record.status is DeliveryStatus.FAILED
        assert record.error
        assert summary.failed == 1

    @pytest.mark.asyncio
    async def test_fans_out_to_both_channels(self, build_engine, make_order, settings_factory):
        engine = build_engine([make_order("1001")], settings_factory(email=True, whatsapp=True))

        await engine.service.send_due_reminders()

        channels = [r.channel for r in engine.stored("1001").notification_log]
        assert channels == [Channel.EMAIL, Channel.WHATSAPP]

    @pytest.mark.asyncio
    async def test_repeated_runs_same_day_are_idempotent(
        self, build_engine, make_order, settings_factory
    ):
        engine = build_engine([make_order("1001")], settings_factory(whatsapp=True))

        await engine.service.send_due_reminders()
        engine.clock.advance(minutes=1)
        second = await engine.service.send_due_reminders()
        engine.clock.advance(hours=5)
        await engine.service.send_due_reminders()

        due = records(engine.stored("1001"), NotificationType.DUE_REMINDER)
        assert len(due) == 2  # one per channel
        assert second.skipped == 1

    @pytest.mark.asyncio
    async def test_next_day_sends_again(self, build_engine, make_order, settings_factory):
        engine = build_engine([make_order("1001", due_in_days=3)], settings_factory())

        await engine.service.send_due_reminders()
        engine.clock.advance(days=1)
        await engine.service.send_due_reminders()

        assert len(records(engine.stored("1001"), NotificationType.DUE_REMINDER)) == 2

    @pytest.mark.asyncio
    async def test_earlier_send_on_any_channel_skips_all_channels(
        self, build_engine, make_order, record_factory, settings_factory, now
    ):
        earlier = record_factory(
            NotificationType.DUE_REMINDER, now - timedelta(hours=1), channel=Channel.EMAIL
        )
        engine = build_engine(
            [make_order("1001", log=[earlier])], settings_factory(whatsapp=True)
        )

        await engine.service.send_due_reminders()

        assert engine.stored("1001").notification_log == [earlier]
        assert engine.senders[Channel.WHATSAPP].messages == []

    @pytest.mark.asyncio
    async def test_paid_and_settled_orders_never_receive_reminders(
        self, build_engine, make_order, settings_factory
    ):
        engine = build_engine(
            [
                make_order("paid", financial_status=FinancialStatus.PAID),
                make_order("settled", outstanding="0"),
            ],
            settings_factory(whatsapp=True),
        )

        await engine.service.run_scheduled_notifications()

        assert engine.stored("paid").notification_log == []
        assert engine.stored("settled").notification_log == []

    @pytest.mark.asyncio
    async def test_missing_settings_aborts_pass(self, build_engine, make_order):
        engine = build_engine([make_order("1001")], settings=None)

        summary = await engine.service.send_due_reminders()

        assert summary.aborted is True
        assert engine.stored("1001").notification_log == []

    @pytest.mark.asyncio
    async def test_unreadable_orders_abort_pass(self, build_engine, make_order, settings_factory):
        engine = build_engine([make_order("1001")], settings_factory())
        engine.orders.fail_load = True

        summary = await engine.service.send_due_reminders()

        assert summary.aborted is True
        assert summary.dispatched == 0

    @pytest.mark.asyncio
    async def test_log_failure_counted_and_pass_continues(
        self, build_engine, make_order, settings_factory
    ):
        engine = build_engine([make_order("1001"), make_order("1002")], settings_factory())
        engine.orders.fail_save = True

        summary = await engine.service.send_due_reminders()

        assert summary.dispatched == 2
        assert summary.log_failures == 2


class TestOverdueReminders:
    """Tests for the scheduled overdue pass and its cap."""

    def _history(self, record_factory, now, count):
        return [
            record_factory(
                NotificationType.OVERDUE_REMINDER,
                now - timedelta(days=i + 1),
                record_id=f"notif_prev_{i}",
            )
            for i in range(count)
        ]

    @pytest.mark.asyncio
    async def test_cap_reached_sends_nothing(
        self, build_engine, make_order, record_factory, settings_factory, now
    ):
        """Overdue by 10 days with 2 prior reminders and a cap of 2: nothing new."""
        order = make_order("1001", due_in_days=-10, log=self._history(record_factory, now, 2))
        engine = build_engine([order], settings_factory(max_overdue_reminders=2))

        summary = await engine.service.send_overdue_reminders()

        assert len(engine.stored("1001").notification_log) == 2
        assert summary.skipped == 1
        assert summary.dispatched == 0

    @pytest.mark.asyncio
    async def test_sends_when_below_cap(
        self, build_engine, make_order, record_factory, settings_factory, now
    ):
        order = make_order("1001", due_in_days=-10, log=self._history(record_factory, now, 1))
        engine = build_engine([order], settings_factory(max_overdue_reminders=2))

        await engine.service.send_overdue_reminders()

        overdue = records(engine.stored("1001"), NotificationType.OVERDUE_REMINDER)
        assert len(overdue) == 2
        assert overdue[-1].timestamp == now

    @pytest.mark.asyncio
    async def test_cap_never_exceeded_across_repeated_runs(
        self, build_engine, make_order, settings_factory
    ):
        engine = build_engine(
            [make_order("1001", due_in_days=-10)],
            settings_factory(max_overdue_reminders=3, whatsapp=True),
        )

        for _ in range(4):
            await engine.service.run_scheduled_notifications("manual")
            engine.clock.advance(days=1)

        overdue = records(engine.stored("1001"), NotificationType.OVERDUE_REMINDER)
        assert len(overdue) == 3

    @pytest.mark.asyncio
    async def test_fan_out_truncated_at_cap(
        self, build_engine, make_order, record_factory, settings_factory, now
    ):
        order = make_order("1001", due_in_days=-10, log=self._history(record_factory, now, 2))
        engine = build_engine(
            [order], settings_factory(max_overdue_reminders=3, email=True, whatsapp=True)
        )

        await engine.service.send_overdue_reminders()

        overdue = records(engine.stored("1001"), NotificationType.OVERDUE_REMINDER)
        assert len(overdue) == 3
        assert overdue[-1].channel is Channel.EMAIL

    @pytest.mark.asyncio
    async def test_same_day_rerun_sends_nothing(
        self, build_engine, make_order, settings_factory
    ):
        engine = build_engine([make_order("1001", due_in_days=-3)], settings_factory())

        await engine.service.send_overdue_reminders()
        engine.clock.advance(minutes=30)
        await engine.service.send_overdue_reminders()

        assert len(records(engine.stored("1001"), NotificationType.OVERDUE_REMINDER)) == 1


class TestRunScheduledNotifications:
    """Tests for the full due + overdue run."""

    @pytest.mark.asyncio
    async def test_runs_both_passes(self, build_engine, make_order, settings_factory):
        engine = build_engine(
            [make_order("due", due_in_days=1), make_order("late", due_in_days=-4)],
            settings_factory(),
        )

        summary = await engine.service.run_scheduled_notifications()

        assert summary.due.dispatched == 1
        assert summary.overdue.dispatched == 1
        assert summary.dispatched == 2

    @pytest.mark.asyncio
    async def test_failing_due_pass_does_not_block_overdue(
        self, build_engine, make_order, settings_factory, mocker
    ):
        engine = build_engine([make_order("late", due_in_days=-4)], settings_factory())
        mocker.patch.object(
            engine.service, "send_due_reminders", AsyncMock(side_effect=RuntimeError("boom"))
        )

        summary = await engine.service.run_scheduled_notifications()

        assert summary.due.aborted is True
        assert summary.overdue.dispatched == 1
        assert len(engine.stored("late").notification_log) == 1

    @pytest.mark.asyncio
    async def test_unparseable_order_does_not_block_others(
        self, build_engine, settings_factory, tmp_path, now
    ):
        """One order with an unknown financial status is skipped, the rest still go out."""
        due = (now + timedelta(days=2)).isoformat()
        bad = {"id": "bad", "dueDate": due, "financialStatus": "authorized", "totalOutstanding": 50}
        path = tmp_path / "orders.json"
        good = {"id": "good", "email": "ada@example.com", "dueDate": due, "totalOutstanding": 50}
        path.write_text(json.dumps([good, bad]), encoding="utf-8")
        engine = build_engine(
            settings=settings_factory(), order_repository=JsonOrderRepository(path)
        )

        summary = await engine.service.run_scheduled_notifications()

        assert summary.due.aborted is False
        assert summary.overdue.aborted is False
        assert summary.due.dispatched == 1
        stored = json.loads(path.read_text(encoding="utf-8"))
        assert len(stored[0]["notificationLog"]) == 1
        assert stored[1] == bad


class TestManualReminder:
    """Tests for send_manual_reminder."""

    @pytest.mark.asyncio
    async def test_sends_and_logs(self, build_engine, make_order, settings_factory):
        engine = build_engine([make_order("1001", due_in_days=30)], settings_factory())

        record = await engine.service.send_manual_reminder(
            "1001", NotificationType.DUE_REMINDER, Channel.EMAIL
        )

        assert record is not None
        assert engine.stored("1001").notification_log == [record]

    @pytest.mark.asyncio
    async def test_bypasses_daily_gate(
        self, build_engine, make_order, record_factory, settings_factory, now
    ):
        earlier = record_factory(NotificationType.DUE_REMINDER, now - timedelta(minutes=5))
        engine = build_engine([make_order("1001", log=[earlier])], settings_factory())

        record = await engine.service.send_manual_reminder(
            "1001", NotificationType.DUE_REMINDER, Channel.EMAIL
        )

        assert record is not None
        assert len(engine.stored("1001").notification_log) == 2

    @pytest.mark.asyncio
    async def test_unknown_order_returns_none(self, build_engine, settings_factory):
        engine = build_engine([], settings_factory())

        record = await engine.service.send_manual_reminder(
            "missing", NotificationType.DUE_REMINDER, Channel.EMAIL
        )

        assert record is None

    @pytest.mark.asyncio
    async def test_missing_settings_returns_none(self, build_engine, make_order):
        engine = build_engine([make_order("1001")], settings=None)

        record = await engine.service.send_manual_reminder(
            "1001", NotificationType.DUE_REMINDER, Channel.EMAIL
        )

        assert record is None

    @pytest.mark.asyncio
    async def test_disabled_channel_returns_none(
        self, build_engine, make_order, settings_factory
    ):
        engine = build_engine([make_order("1001")], settings_factory(whatsapp=False))

        record = await engine.service.send_manual_reminder(
            "1001", NotificationType.DUE_REMINDER, Channel.WHATSAPP
        )

        assert record is None
        assert engine.stored("1001").notification_log == []


class TestRetryFailed:
    """Tests for retry_failed."""

    @pytest.mark.asyncio
    async def test_retries_with_original_type_and_channel(
        self, build_engine, make_order, record_factory, settings_factory, now
    ):
        failed = record_factory(
            NotificationType.OVERDUE_REMINDER,
            now - timedelta(days=1),
            channel=Channel.WHATSAPP,
            status=DeliveryStatus.FAILED,
            record_id="notif_failed",
        )
        engine = build_engine(
            [make_order("1001", due_in_days=-5, log=[failed])], settings_factory(whatsapp=True)
        )

        record = await engine.service.retry_failed("notif_failed")

        assert record.type is NotificationType.OVERDUE_REMINDER
        assert record.channel is Channel.WHATSAPP
        assert record.id != "notif_failed"
        log = engine.stored("1001").notification_log
        assert [r.id for r in log] == ["notif_failed", record.id]

    @pytest.mark.asyncio
    async def test_delivered_record_is_not_retryable(
        self, build_engine, make_order, record_factory, settings_factory, now
    ):
        delivered = record_factory(
            NotificationType.DUE_REMINDER,
            now,
            status=DeliveryStatus.DELIVERED,
            record_id="notif_ok",
        )
        engine = build_engine([make_order("1001", log=[delivered])], settings_factory())

        with pytest.raises(NotificationNotFoundError, match="not found"):
            await engine.service.retry_failed("notif_ok")

    @pytest.mark.asyncio
    async def test_unknown_id(self, build_engine, make_order, settings_factory):
        engine = build_engine([make_order("1001")], settings_factory())

        with pytest.raises(NotificationNotFoundError):
            await engine.service.retry_failed("notif_nope")


class TestStatsAndLogs:
    """Tests for stats and log queries."""

    def test_stats(self, build_engine, make_order, record_factory, settings_factory, now):
        engine = build_engine(
            [
                make_order("soon", due_in_days=2, outstanding="100.00"),
                make_order("later", due_in_days=10, outstanding="50.00"),
                make_order(
                    "late",
                    due_in_days=-3,
                    outstanding="25.50",
                    log=[
                        record_factory(NotificationType.OVERDUE_REMINDER, now, record_id="t1"),
                        record_factory(
                            NotificationType.OVERDUE_REMINDER,
                            now - timedelta(days=1),
                            record_id="y1",
                        ),
                    ],
                ),
                make_order("paid", due_in_days=-3, financial_status=FinancialStatus.PAID),
            ],
            settings_factory(due_reminder_days=3),
        )

        stats = engine.service.get_notification_stats()

        assert stats.total_due == Decimal("150.00")
        assert stats.total_overdue == Decimal("25.50")
        assert stats.upcoming_reminders == 1
        assert stats.reminders_sent_today == 1
        assert stats.to_dict()["totalOverdue"] == 25.5

    def test_stats_default_window_without_settings(self, build_engine, make_order):
        engine = build_engine([make_order("a", due_in_days=3), make_order("b", due_in_days=4)])

        assert engine.service.get_notification_stats().upcoming_reminders == 1

    def test_stats_survive_storage_failure(self, build_engine, settings_factory):
        engine = build_engine([], settings_factory())
        engine.orders.fail_load = True

        stats = engine.service.get_notification_stats()

        assert stats.total_due == 0
        assert stats.reminders_sent_today == 0

    @pytest.mark.asyncio
    async def test_logs_newest_first_after_runs(self, build_engine, make_order, settings_factory):
        engine = build_engine(
            [make_order("a", due_in_days=1), make_order("b", due_in_days=-2)],
            settings_factory(whatsapp=True),
        )
        await engine.service.run_scheduled_notifications()
        engine.clock.advance(days=1)
        await engine.service.run_scheduled_notifications()

        entries = engine.service.get_all_notification_logs()
        timestamps = [e.timestamp for e in entries]

        assert timestamps == sorted(timestamps, reverse=True)
        by_type = engine.service.get_all_notification_logs(
            LogFilters(type=NotificationType.OVERDUE_REMINDER)
        )
        by_both = engine.service.get_all_notification_logs(
            LogFilters(type=NotificationType.OVERDUE_REMINDER, channel=Channel.WHATSAPP)
        )
        assert len(by_type) >= len(by_both) > 0

    def test_logs_empty_on_storage_failure(self, build_engine):
        engine = build_engine([])
        engine.orders.fail_load = True

        assert engine.service.get_all_notification_logs() == []


class TestOrderLookupAndSettings:
    def test_get_order(self, build_engine, make_order):
        engine = build_engine([make_order("1001")])
        assert engine.service.get_order("1001").id == "1001"

    def test_get_order_unknown(self, build_engine):
        engine = build_engine([])
        with pytest.raises(OrderNotFoundError):
            engine.service.get_order("nope")

    def test_initialize_settings_writes_defaults_once(self, build_engine):
        engine = build_engine([], settings=None)

        assert engine.service.initialize_settings() is True
        assert engine.settings.settings is not None
        assert engine.service.initialize_settings() is False
        assert engine.service.initialize_settings(force=True) is True
