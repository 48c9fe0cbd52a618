"""Prometheus metrics instrumentation for the reminder engine.

Counts dispatch attempts, log appends and scheduler passes so delivery
failures and storage trouble show up on dashboards.
"""

from prometheus_client import Counter, start_http_server

from payremind.utils.logging import get_logger

logger = get_logger(__name__)

# ============================================================================
# Metric Definitions
# ============================================================================

# Counter: Reminders dispatched
reminders_dispatched_total = Counter(
    "payremind_reminders_dispatched_total",
    "Total number of reminder dispatch attempts",
    ["notification_type", "channel", "status"],  # due/overdue, email/whatsapp, sent/failed/...
)

# Counter: Notification log appends
log_appends_total = Counter(
    "payremind_log_appends_total",
    "Total number of notification log append attempts",
    ["outcome"],  # appended/order_not_found/storage_failed
)

# Counter: Scheduler passes
scheduler_passes_total = Counter(
    "payremind_scheduler_passes_total",
    "Total number of full due + overdue passes",
    ["trigger", "status"],  # labels: startup/schedule/manual, success/failure
)


# ============================================================================
# Metrics Server
# ============================================================================


def start_metrics_server(port: int = 8000) -> None:
    """Start Prometheus metrics HTTP server.

    Args:
        port: Port to expose metrics on (default: 8000)
    """
    try:
        start_http_server(port)
        logger.info("metrics_server_started", port=port)
    except OSError as e:
        # Port already in use, skip
        logger.warning("metrics_server_unavailable", port=port, error=str(e))


# ============================================================================
# Convenience Functions
# ============================================================================


def record_dispatch(notification_type: str, channel: str, status: str) -> None:
    """Record a reminder dispatch attempt."""
    reminders_dispatched_total.labels(
        notification_type=notification_type, channel=channel, status=status
    ).inc()


def record_log_append(outcome: str) -> None:
    """Record a notification log append attempt."""
    log_appends_total.labels(outcome=outcome).inc()


def record_scheduler_pass(trigger: str, status: str = "success") -> None:
    """Record a full scheduler pass.

    Args:
        trigger: What started the pass (startup, schedule, manual)
        status: success or failure
    """
    scheduler_passes_total.labels(trigger=trigger, status=status).inc()
