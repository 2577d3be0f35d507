"""Create/update/delete notifications for host-side cache invalidation."""

from collections import defaultdict
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, List, Union

import structlog

logger = structlog.get_logger()

Listener = Callable[[Any], None]


class EventType(str, Enum):
    """Registry events."""
    TEMPLATE_CREATED = "template_created"
    TEMPLATE_UPDATED = "template_updated"
    TEMPLATE_DELETED = "template_deleted"
    WORKFLOW_CREATED = "workflow_created"
    WORKFLOW_UPDATED = "workflow_updated"
    WORKFLOW_DELETED = "workflow_deleted"
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"


class EventBus:
    """Observer lists keyed by event type.

    A failing listener is logged and skipped; it never affects the caller
    that emitted the event or the remaining listeners.
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[Listener]] = defaultdict(list)
        self._lock = RLock()
        self.logger = logger.bind(component="event_bus")

    def on(self, event: Union[EventType, str], listener: Listener) -> None:
        event = EventType(event)
        with self._lock:
            self._listeners[event].append(listener)

    def off(self, event: Union[EventType, str], listener: Listener) -> bool:
        """Remove a listener. Returns False if it was not subscribed."""
        event = EventType(event)
        with self._lock:
            try:
                self._listeners[event].remove(listener)
            except ValueError:
                return False
        return True

    def listener_count(self, event: Union[EventType, str]) -> int:
        with self._lock:
            return len(self._listeners.get(EventType(event), []))

    def emit(self, event: Union[EventType, str], payload: Any) -> None:
        event = EventType(event)
        with self._lock:
            listeners = list(self._listeners.get(event, []))

        for listener in listeners:
            try:
                listener(payload)
            except Exception:
                self.logger.exception("Event listener failed", event_type=event.value)
