"""
Base Service Foundation

Purpose
-------
Foundational class for the Mahoya domain services. Services orchestrate
store reads and writes, enforce business rules, and emit domain events.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Event emission helpers
- Validation error wrapping

What this class does NOT do:
- Manage database transactions (the store's job)
- Contain gamification rules (pure modules do that)

Usage
-----
    class BenefitService(BaseService):
        def __init__(self, store, config, event_bus, logger):
            super().__init__(config, event_bus, logger)
            self.store = store
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from mahoya.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from mahoya.core.config.config import Config
    from mahoya.core.event.bus import EventBus


class BaseService:
    """
    Base class for all domain services.

    Args:
        config: Configuration source exposing ``get(key, default)``
        event_bus: Event bus for cross-module communication
        logger: Structured logger instance
    """

    def __init__(
        self,
        config: type[Config] | Any,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config = config
        self._events = event_bus
        self.log = logger

    def get_config(self, key: str, default: Optional[Any] = None, required: bool = False) -> Any:
        """
        Safely retrieve configuration value.

        Raises:
            ValidationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ValidationError(key, f"Required configuration key '{key}' is missing")
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Emit a domain event for cross-module communication.

        Args:
            event_type: Type/name of the event
            data: Event payload data
            context: Optional additional context (user_id, admin_id, etc.)
        """
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )

    def validate_positive_int(self, value: int, name: str) -> None:
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ValidationError(name, f"{name} must be a positive integer, got {value}")

    def validate_non_negative(self, value: float, name: str) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise ValidationError(name, f"{name} must be non-negative, got {value}")

    def validate_identity(self, value: Any, name: str = "user_id") -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(name, f"{name} must be a non-empty string, got {value!r}")
        return value
