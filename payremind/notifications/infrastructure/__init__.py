"""Infrastructure layer: storage collaborators."""

from .repository import (
    JsonOrderRepository,
    JsonSettingsRepository,
    OrderRepository,
    SettingsRepository,
)

__all__ = [
    "OrderRepository",
    "SettingsRepository",
    "JsonOrderRepository",
    "JsonSettingsRepository",
]
