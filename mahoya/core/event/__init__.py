"""
Mahoya event system.

Usage
-----
```python
from mahoya.core.event import EventBus, ListenerPriority

bus = EventBus()
bus.subscribe("d20.*", audit_listener, priority=ListenerPriority.LOW)
```
"""

from mahoya.core.event.bus import (
    EventBus,
    EventListener,
    EventMetrics,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventListener",
    "EventMetrics",
    "EventPayload",
    "ListenerPriority",
]
