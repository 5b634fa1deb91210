"""
Base domain model classes for Mahoya.

Purpose
-------
Foundational abstractions for rich domain models: entities with identity,
aggregate roots that record domain events, a validation error type, and the
field validators used when parsing rows coming back from the store.

Non-Responsibilities
--------------------
- Persistence (handled by the store)
- Database schema (handled by SQLAlchemy models)
- Service orchestration (handled by the service layer)

Design Patterns
---------------
- **Entity**: Objects with identity that persist over time
- **Aggregate Root**: Consistency boundary for domain operations
- **Domain Events**: Communicate state changes to other parts of the system
- **Record types**: frozen dataclasses validated in ``__post_init__`` so a
  malformed row never reaches arithmetic
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ============================================================================
# DOMAIN EVENTS
# ============================================================================


@dataclass
class DomainEvent:
    """
    A domain event that has occurred.

    Attributes
    ----------
    event_name : str
        Event name (e.g., "player.leveled_up")
    payload : Dict[str, Any]
        Event payload with relevant data
    occurred_at : datetime
        When the event occurred (UTC)
    """

    event_name: str
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ============================================================================
# ENTITY
# ============================================================================


class Entity(ABC):
    """
    Base class for entities with identity.

    Two entities with the same ID are the same entity, even if their
    attributes differ.
    """

    def __init__(self, entity_id: str) -> None:
        self._id = entity_id
        self._domain_events: List[DomainEvent] = []

    @property
    def id(self) -> str:
        return self._id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity):
            return False
        return type(self) is type(other) and self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id))

    def add_domain_event(self, event_name: str, payload: Dict[str, Any]) -> None:
        self._domain_events.append(DomainEvent(event_name=event_name, payload=payload))

    def clear_domain_events(self) -> List[DomainEvent]:
        """Clear and return all domain events."""
        events = self._domain_events.copy()
        self._domain_events.clear()
        return events

    def get_pending_events(self) -> List[DomainEvent]:
        return self._domain_events.copy()


class AggregateRoot(Entity):
    """
    Base class for aggregate roots.

    Subclasses expose business methods that maintain aggregate invariants
    and emit domain events for significant state transitions.
    """

    pass


# ============================================================================
# VALIDATION
# ============================================================================


class DomainValidationError(Exception):
    """Raised when a domain model or record fails validation."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


def validate_positive(value: int, field_name: str) -> None:
    if value <= 0:
        raise DomainValidationError(f"{field_name} must be positive, got {value}", field=field_name)


def validate_non_negative(value: float, field_name: str) -> None:
    if value < 0:
        raise DomainValidationError(f"{field_name} must be non-negative, got {value}", field=field_name)


def validate_range(value: int, min_val: int, max_val: int, field_name: str) -> None:
    if not (min_val <= value <= max_val):
        raise DomainValidationError(
            f"{field_name} must be between {min_val} and {max_val}, got {value}",
            field=field_name,
        )


def validate_not_empty(value: Optional[str], field_name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise DomainValidationError(f"{field_name} cannot be empty", field=field_name)


def validate_int(value: Any, field_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise DomainValidationError(
            f"{field_name} must be an integer, got {type(value).__name__}", field=field_name
        )


def validate_number(value: Any, field_name: str) -> None:
    """Reject non-numeric values and NaN."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != value:
        raise DomainValidationError(f"{field_name} must be a number, got {value!r}", field=field_name)


def as_utc(value: Any, field_name: str) -> Optional[datetime]:
    """
    Parse a timestamp into an aware UTC datetime.

    Accepts ``None``, datetimes (naive values are taken as UTC) and ISO-8601
    strings. Anything else is rejected.
    """
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise DomainValidationError(
                f"{field_name} is not an ISO-8601 timestamp: {value!r}", field=field_name
            ) from exc
    if not isinstance(value, datetime):
        raise DomainValidationError(f"{field_name} must be a timestamp, got {value!r}", field=field_name)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
