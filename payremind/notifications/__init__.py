"""Payment reminder notifications.

Layers:
- domain: orders, notification records, settings
- application: selection rules, dispatcher, notification log, service, scheduler
- infrastructure: JSON storage collaborators
"""

__all__ = [
    "NotificationScheduler",
    "NotificationService",
    "build_notification_service",
    "build_scheduler",
]

from .application import NotificationScheduler, NotificationService
from .factory import build_notification_service, build_scheduler
