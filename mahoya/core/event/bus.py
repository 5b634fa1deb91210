"""
Mahoya EventBus: async in-process pub/sub for domain events.

Purpose
-------
Decouples gamification services from side effects (notifications, audit
trails, analytics). Services publish events such as ``d20.rolled`` or
``benefit.used``; listeners subscribe by exact name or wildcard pattern.

Responsibilities
----------------
- Register/unregister listeners with priorities
- Publish events to all matching listeners (exact + wildcard)
- Execute listeners in priority order, each awaited with a timeout
- Error isolation (one failing listener never blocks others)
- Publish/error counters for introspection

Design Decisions
----------------
- **Instance-based**: each application (or test) owns its bus
- **Wildcards**: ``*`` matches any run of characters, so ``d20.*`` receives
  every promotion event
- **Sync or async callbacks**: coroutines are awaited, plain callables called
"""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from fnmatch import fnmatchcase
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from mahoya.core.logging.logger import get_logger

logger = get_logger(__name__)

EventPayload = Dict[str, Any]

CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


class ListenerPriority(Enum):
    """Lower values run first."""

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


@dataclass(slots=True, frozen=True)
class EventListener:
    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority,
        identifier: Optional[str],
        once: bool,
    ) -> "EventListener":
        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(callback, "__qualname__", repr(callback))
            identifier = f"{module}.{qualname}@{event_name}"
        return cls(callback=callback, priority=priority, identifier=identifier, once=once)


@dataclass
class EventMetrics:
    events_published: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    listener_errors: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    listener_timeouts: int = 0

    def get_summary(self) -> Dict[str, Any]:
        total = sum(self.events_published.values())
        errors = sum(self.listener_errors.values())
        return {
            "total_events_published": total,
            "events_by_type": dict(self.events_published),
            "total_errors": errors,
            "errors_by_event": dict(self.listener_errors),
            "listener_timeouts": self.listener_timeouts,
            "error_rate": round(errors / total * 100, 2) if total else 0.0,
        }


class EventBus:
    """
    Async EventBus for the gamification services.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("d20.rolled", on_roll, priority=ListenerPriority.HIGH)
    >>> await bus.publish("d20.rolled", {"user_id": "u-1", "roll_result": 20})
    """

    def __init__(self, *, listener_timeout_seconds: float = 5.0) -> None:
        self._listeners: Dict[str, List[EventListener]] = defaultdict(list)
        self._timeout = listener_timeout_seconds
        self._metrics = EventMetrics()

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        if len(sig.parameters) != 1:
            name = getattr(callback, "__qualname__", repr(callback))
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(sig.parameters)} parameters for '{name}'"
            )

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns:
            The listener identifier (for unsubscribing later).

        Raises:
            ValueError: If callback does not take exactly one parameter.
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(event_name, callback, priority, identifier, once)
        existing = self._listeners[event_name]
        if any(item.identifier == listener.identifier for item in existing):
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
            return listener.identifier

        existing.append(listener)
        existing.sort(key=lambda item: item.priority.value)

        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": listener.priority.name,
            },
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        listeners = self._listeners.get(event_name, [])
        remaining = [item for item in listeners if item.identifier != identifier]
        removed = len(remaining) != len(listeners)
        if remaining:
            self._listeners[event_name] = remaining
        else:
            self._listeners.pop(event_name, None)
        return removed

    def clear(self) -> None:
        self._listeners.clear()

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    def _matching_listeners(self, event_name: str) -> List[EventListener]:
        matched: List[EventListener] = []
        for pattern, listeners in list(self._listeners.items()):
            if pattern == event_name or ("*" in pattern and fnmatchcase(event_name, pattern)):
                matched.extend(listeners)
                once = [item for item in listeners if item.once]
                for item in once:
                    self.unsubscribe(pattern, item.identifier)
        matched.sort(key=lambda item: item.priority.value)
        return matched

    async def _run_listener(self, event_name: str, listener: EventListener, data: EventPayload) -> Any:
        try:
            result = listener.callback(data)
            if inspect.isawaitable(result):
                result = await asyncio.wait_for(result, timeout=self._timeout)
            return result
        except asyncio.TimeoutError:
            self._metrics.listener_timeouts += 1
            logger.error(
                "EventBus: listener timed out",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
        except Exception as exc:
            self._metrics.listener_errors[event_name] += 1
            logger.exception(
                "EventBus: listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "error_type": type(exc).__name__,
                },
            )
        return None

    async def publish(self, event_name: str, data: EventPayload) -> List[Any]:
        """
        Publish an event to all subscribed listeners.

        Listeners run one at a time in priority order. A failing or slow
        listener is logged and counted; the remaining listeners still run.

        Returns:
            Results from each listener (None for failed listeners).
        """
        self._metrics.events_published[event_name] += 1

        listeners = self._matching_listeners(event_name)
        logger.debug(
            "EventBus: publishing event",
            extra={
                "event_name": event_name,
                "payload_keys": list(data.keys()),
                "listener_count": len(listeners),
            },
        )

        return [await self._run_listener(event_name, listener, data) for listener in listeners]

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_metrics_summary(self) -> Dict[str, Any]:
        return self._metrics.get_summary()

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return sum(len(items) for items in self._listeners.values())
        return sum(
            len(items)
            for pattern, items in self._listeners.items()
            if pattern == event_name or ("*" in pattern and fnmatchcase(event_name, pattern))
        )
