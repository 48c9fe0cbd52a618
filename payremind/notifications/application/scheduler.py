"""Daily reminder scheduler.

APScheduler-based ticker that polls every ``poll_interval_seconds`` and fires
the full due + overdue run when the wall clock reaches the configured
``hour:minute``, once per matching minute.

Example:
    >>> scheduler = NotificationScheduler(service, hour=9, minute=0)
    >>> scheduler.start()
    >>>
    >>> # Check status
    >>> scheduler.status().to_dict()
    >>>
    >>> # Run a pass right now, blocking until it completes
    >>> scheduler.run_now()
    >>>
    >>> scheduler.stop()
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime, timedelta, tzinfo
from typing import Any

from apscheduler.schedulers.background import BackgroundScheduler  # type: ignore[import-untyped]
from apscheduler.triggers.date import DateTrigger  # type: ignore[import-untyped]
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore[import-untyped]

from payremind.notifications.domain.value_objects import RunSummary, SchedulerStatus
from payremind.utils.async_bridge import run_async
from payremind.utils.logging import get_logger

from .clock import Clock, to_zone
from .service import NotificationService

logger = get_logger(__name__)

TICK_JOB_ID = "notification_tick"


class NotificationScheduler:
    """Owns the recurring trigger for one process.

    Construct one per process and pass it to whatever needs to control or
    query it. A fresh APScheduler instance is created on every ``start()``
    since a shut down scheduler cannot be restarted.

    Args:
        service: Engine whose passes are triggered
        hour: Target hour (0-23) in *tz*
        minute: Target minute (0-59)
        poll_interval_seconds: Tick period
        clock: Source of the current time (defaults to the service clock)
        tz: Zone of the target time (defaults to the service zone)
        scheduler_factory: Builds the APScheduler instance
    """

    def __init__(
        self,
        service: NotificationService,
        hour: int = 9,
        minute: int = 0,
        poll_interval_seconds: int = 60,
        clock: Clock | None = None,
        tz: tzinfo | None = None,
        scheduler_factory: Callable[..., Any] = BackgroundScheduler,
    ) -> None:
        self.service = service
        self.hour = hour
        self.minute = minute
        self.poll_interval_seconds = poll_interval_seconds
        self.clock = clock or service.clock
        self.tz = tz or service.tz
        self._scheduler_factory = scheduler_factory

        self.scheduler: Any = None
        self.running = False
        self.last_run: datetime | None = None
        self._last_fired: str | None = None
        self._state_lock = threading.Lock()

        logger.info(
            "notification_scheduler_initialized",
            target=f"{hour:02d}:{minute:02d}",
            poll_interval_seconds=poll_interval_seconds,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Queue one immediate run, then start ticking."""
        with self._state_lock:
            if self.running:
                logger.warning("notification_scheduler_already_running")
                return

            self.scheduler = self._scheduler_factory(timezone=self.tz)
            self.scheduler.add_job(
                func=self._run_pass,
                trigger=DateTrigger(),
                args=["startup"],
                id="notification_startup_run",
                name="Startup Reminder Run",
            )
            self.scheduler.add_job(
                func=self._tick,
                trigger=IntervalTrigger(seconds=self.poll_interval_seconds),
                id=TICK_JOB_ID,
                name="Reminder Schedule Check",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            self.scheduler.start()
            self.running = True

        logger.info(
            "notification_scheduler_started",
            next_run=self.get_next_run_time().isoformat(),
        )

    def stop(self) -> None:
        """Cancel future ticks. A run already in progress finishes on its own."""
        with self._state_lock:
            if not self.running:
                logger.info("notification_scheduler_not_running")
                return

            self.scheduler.shutdown(wait=False)
            self.scheduler = None
            self.running = False

        logger.info("notification_scheduler_stopped")

    # ------------------------------------------------------------------
    # Trigger
    # ------------------------------------------------------------------

    def should_fire(self, now: datetime) -> bool:
        """True on the target minute, once per calendar minute."""
        local = to_zone(now, self.tz)
        if (local.hour, local.minute) != (self.hour, self.minute):
            return False
        return local.strftime("%Y-%m-%dT%H:%M") != self._last_fired

    def _tick(self) -> None:
        """Evaluate the gate and queue the run as its own job."""
        try:
            now = to_zone(self.clock(), self.tz)
            if not self.should_fire(now):
                return

            self._last_fired = now.strftime("%Y-%m-%dT%H:%M")
            scheduler = self.scheduler
            if scheduler is None:
                return
            scheduler.add_job(
                func=self._run_pass,
                trigger=DateTrigger(),
                args=["schedule"],
                id=f"notification_run_{self._last_fired}",
                name="Scheduled Reminder Run",
                replace_existing=True,
            )
            logger.info("notification_run_queued", minute=self._last_fired)
        except Exception as e:
            logger.error("notification_tick_failed", error=str(e), exc_info=True)

    def _run_pass(self, trigger: str) -> RunSummary | None:
        try:
            summary = run_async(self.service.run_scheduled_notifications(trigger))
        except Exception as e:
            logger.error("notification_run_failed", trigger=trigger, error=str(e), exc_info=True)
            return None
        finally:
            self.last_run = self.clock()
        return summary

    def run_now(self) -> RunSummary | None:
        """Run one full pass and wait for it. Does not change the running state."""
        return self._run_pass("manual")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_next_run_time(self) -> datetime:
        """Today at the target time if still ahead, else tomorrow."""
        now = to_zone(self.clock(), self.tz)
        target = now.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if now < target:
            return target
        return target + timedelta(days=1)

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(
            is_running=self.running,
            next_run=self.get_next_run_time(),
            last_run=self.last_run,
        )
