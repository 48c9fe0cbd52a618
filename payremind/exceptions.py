"""Standardized exception hierarchy for payremind.

All exceptions carry a ``context`` dict so they can be logged as structured
fields.

Usage:
    from payremind.exceptions import StorageError

    try:
        orders = repository.load_orders()
    except StorageError as e:
        logger.error("orders_unavailable", error=str(e), context=e.context)
"""

from __future__ import annotations

from typing import Any


class PayRemindError(Exception):
    """Base exception for all payremind errors.

    Attributes:
        message: Human-readable error message
        context: Additional context for debugging (dict)
        original_error: Original exception if wrapped
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.original_error = original_error

    def __str__(self) -> str:
        """Format exception with context for logging."""
        base = self.message
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base = f"{base} ({ctx_str})"
        if self.original_error:
            base = f"{base} [caused by: {type(self.original_error).__name__}]"
        return base

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, context={self.context!r})"


# =============================================================================
# Validation & Configuration Errors
# =============================================================================


class ValidationError(PayRemindError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)[:100]  # Truncate for safety
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class ConfigurationError(PayRemindError):
    """Raised when application or notification configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        *,
        setting: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if setting:
            context["setting"] = setting
        kwargs["context"] = context
        super().__init__(message, **kwargs)


# =============================================================================
# Storage Errors
# =============================================================================


class StorageError(PayRemindError):
    """Raised when the order or settings collection cannot be read or written."""

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if path:
            context["path"] = path
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class RecordNotFoundError(PayRemindError):
    """Raised when a requested record does not exist.

    Args:
        entity_type: Type of entity (e.g., "order", "notification")
        entity_id: ID of the missing entity
    """

    def __init__(
        self,
        message: str,
        *,
        entity_type: str | None = None,
        entity_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if entity_type:
            context["entity_type"] = entity_type
        if entity_id:
            context["entity_id"] = str(entity_id)
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class OrderNotFoundError(RecordNotFoundError):
    """Raised when an order id is unknown."""

    def __init__(self, order_id: str, **kwargs: Any) -> None:
        super().__init__(
            f"Order {order_id} not found", entity_type="order", entity_id=order_id, **kwargs
        )


class NotificationNotFoundError(RecordNotFoundError):
    """Raised when no failed notification matches a retry request."""

    def __init__(self, notification_id: str, **kwargs: Any) -> None:
        super().__init__(
            f"Failed notification {notification_id} not found",
            entity_type="notification",
            entity_id=notification_id,
            **kwargs,
        )


# =============================================================================
# Delivery Errors
# =============================================================================


class DeliveryError(PayRemindError):
    """Raised by a channel sender when the transport rejects a message."""

    def __init__(
        self,
        message: str,
        *,
        channel: str | None = None,
        status_code: int | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if channel:
            context["channel"] = channel
        if status_code:
            context["status_code"] = status_code
        kwargs["context"] = context
        super().__init__(message, **kwargs)


# =============================================================================
# Utility Functions
# =============================================================================


def wrap_exception(
    error: Exception,
    message: str,
    *,
    exception_class: type[PayRemindError] = PayRemindError,
    **context: Any,
) -> PayRemindError:
    """Wrap an external exception in the payremind hierarchy.

    Example:
        try:
            path.write_text(payload)
        except OSError as e:
            raise wrap_exception(e, "Failed to write orders", exception_class=StorageError)
    """
    return exception_class(
        message,
        context=context,
        original_error=error,
    )


__all__ = [
    "PayRemindError",
    "ValidationError",
    "ConfigurationError",
    "StorageError",
    "RecordNotFoundError",
    "OrderNotFoundError",
    "NotificationNotFoundError",
    "DeliveryError",
    "wrap_exception",
]
