"""Named action handlers invoked by action steps."""

import inspect
import time
from threading import RLock
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Union

import structlog

from .errors import ExecutionError, UnknownActionError

logger = structlog.get_logger()

ActionResult = Mapping[str, Any]
ActionHandler = Callable[
    [Dict[str, Any], Mapping[str, Any]],
    Union[ActionResult, Awaitable[ActionResult]],
]


def _stamp(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}"


def schedule_meeting(parameters: Dict[str, Any], variables: Mapping[str, Any]) -> Dict[str, Any]:
    """Pretend to schedule a meeting and echo the request."""
    return {"meetingScheduled": True, "meetingId": _stamp("meeting"), **parameters}


def create_directory(parameters: Dict[str, Any], variables: Mapping[str, Any]) -> Dict[str, Any]:
    """Pretend to create a shared directory and echo the request."""
    return {"directoryCreated": True, "directoryId": _stamp("dir"), **parameters}


def send_notification(parameters: Dict[str, Any], variables: Mapping[str, Any]) -> Dict[str, Any]:
    """Pretend to send a notification and echo the request."""
    return {"notificationSent": True, "notificationId": _stamp("notif"), **parameters}


BUILTIN_ACTIONS: Dict[str, ActionHandler] = {
    "schedule_meeting": schedule_meeting,
    "create_directory": create_directory,
    "send_notification": send_notification,
}


class ActionRegistry:
    """Maps action names to host-supplied handlers.

    A handler receives the resolved step parameters and a read-only view of
    the variable environment, and returns a mapping (or an awaitable of one)
    that is merged into the environment.
    """

    def __init__(self):
        self._handlers: Dict[str, ActionHandler] = {}
        self._lock = RLock()
        self.logger = logger.bind(component="action_registry")

    @classmethod
    def with_builtins(cls) -> "ActionRegistry":
        """Registry pre-populated with the built-in actions."""
        registry = cls()
        for name, handler in BUILTIN_ACTIONS.items():
            registry.register(name, handler)
        return registry

    def register(self, name: str, handler: ActionHandler) -> None:
        """Register or replace a handler."""
        if not name:
            raise ValueError("Action name must not be empty")
        if not callable(handler):
            raise TypeError(f"Handler for action {name} is not callable")
        with self._lock:
            replaced = name in self._handlers
            self._handlers[name] = handler
        self.logger.debug("Action registered", action=name, replaced=replaced)

    def unregister(self, name: str) -> bool:
        """Remove a handler. Returns False if it was not registered."""
        with self._lock:
            removed = self._handlers.pop(name, None) is not None
        if removed:
            self.logger.debug("Action unregistered", action=name)
        return removed

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._handlers

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._handlers)

    async def dispatch(
        self,
        name: str,
        parameters: Dict[str, Any],
        variables: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Invoke the handler registered under ``name``."""
        with self._lock:
            handler = self._handlers.get(name)
        if handler is None:
            raise UnknownActionError(name)

        result = handler(parameters, variables)
        if inspect.isawaitable(result):
            result = await result

        if result is None:
            return {}
        if not isinstance(result, Mapping):
            raise ExecutionError(
                f"Action {name} returned {type(result).__name__}, expected a mapping",
                error_code="INVALID_ACTION_RESULT",
                details={"action": name},
            )
        return dict(result)
