"""Storage collaborators for orders and notification settings.

The reminder engine treats both stores as external. It reads whole
collections and writes back only what it owns: notification logs and
settings. ``JsonOrderRepository`` and ``JsonSettingsRepository`` keep them
in JSON files with atomic writes (temp file + rename).

Failures are raised as ``StorageError``; callers decide whether to degrade.
"""

from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from payremind.exceptions import StorageError, wrap_exception
from payremind.notifications.domain.models import NotificationSettings, Order
from payremind.utils.logging import get_logger

logger = get_logger(__name__)


class OrderRepository(ABC):
    """Read/write access to the full order collection."""

    @abstractmethod
    def load_orders(self) -> list[Order]:
        """Load every order the engine can parse.

        Raises:
            StorageError: If the collection cannot be read
        """

    @abstractmethod
    def save_orders(self, orders: list[Order]) -> None:
        """Persist the notification logs of *orders*.

        Fields other than the log are left as stored.

        Raises:
            StorageError: If the collection cannot be written
        """


class SettingsRepository(ABC):
    """Read/write access to notification settings."""

    @abstractmethod
    def load_settings(self) -> NotificationSettings | None:
        """Load settings, or None when none have been stored yet.

        Raises:
            StorageError: If stored settings cannot be read or parsed
        """

    @abstractmethod
    def save_settings(self, settings: NotificationSettings) -> None:
        """Persist *settings*.

        Raises:
            StorageError: If settings cannot be written
        """


def _read_json(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise wrap_exception(
            e, f"Failed to read {path.name}", exception_class=StorageError, path=str(path)
        ) from e


def _stored_id(item: Any) -> Any:
    """Lookup key of a raw stored order, matching the parsed ``Order.id``."""
    if not isinstance(item, dict):
        return None
    value = item.get("id")
    return str(value) if isinstance(value, int) else value


def _write_json_atomic(path: Path, payload: Any) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise wrap_exception(
            e, f"Failed to write {path.name}", exception_class=StorageError, path=str(path)
        ) from e


class JsonOrderRepository(OrderRepository):
    """Orders stored as a JSON array in a single file, owned by order storage.

    Only ``notificationLog`` is ever written back: every other key of a stored
    order stays exactly as loaded. Orders that fail validation are skipped on
    load and left untouched on save. A missing file is an empty collection.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read_items(self) -> list[Any]:
        if not self.path.exists():
            logger.debug("orders_file_missing", path=str(self.path))
            return []

        data = _read_json(self.path)
        if not isinstance(data, list):
            raise StorageError("Orders file must contain a JSON array", path=str(self.path))
        return data

    def load_orders(self) -> list[Order]:
        orders: list[Order] = []
        for index, item in enumerate(self._read_items()):
            try:
                orders.append(Order.model_validate(item))
            except PydanticValidationError as e:
                logger.warning(
                    "order_skipped_invalid",
                    path=str(self.path),
                    index=index,
                    order_id=item.get("id") if isinstance(item, dict) else None,
                    errors=[err["loc"] for err in e.errors()],
                )
        return orders

    def save_orders(self, orders: list[Order]) -> None:
        """Write the notification log of each order into its stored object.

        Stored orders without a log key only gain one once they have records.
        Orders not present in the file yet are appended whole.
        """
        pending = {order.id: order for order in orders}
        items = []
        for item in self._read_items():
            order = pending.pop(_stored_id(item), None)
            if order is not None and (order.notification_log or "notificationLog" in item):
                log = [record.to_json() for record in order.notification_log]
                item = {**item, "notificationLog": log}
            items.append(item)
        items.extend(order.to_json() for order in pending.values())

        _write_json_atomic(self.path, items)
        logger.debug("orders_saved", path=str(self.path), count=len(items))


class JsonSettingsRepository(SettingsRepository):
    """Notification settings stored as a JSON object."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load_settings(self) -> NotificationSettings | None:
        if not self.path.exists():
            logger.warning("notification_settings_missing", path=str(self.path))
            return None

        data = _read_json(self.path)
        try:
            return NotificationSettings.model_validate(data)
        except PydanticValidationError as e:
            raise wrap_exception(
                e,
                "Invalid notification settings",
                exception_class=StorageError,
                path=str(self.path),
            ) from e

    def save_settings(self, settings: NotificationSettings) -> None:
        _write_json_atomic(self.path, settings.to_json())
        logger.info("notification_settings_saved", path=str(self.path))


__all__ = [
    "OrderRepository",
    "SettingsRepository",
    "JsonOrderRepository",
    "JsonSettingsRepository",
]
