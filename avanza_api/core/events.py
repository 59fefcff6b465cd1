"""Push message dispatch and diagnostic event definitions."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from loguru import logger

PushListener = Callable[[Any], object]


@dataclass(frozen=True, slots=True)
class DiagnosticEvent:
    """Telemetry message for instrumentation warnings/info."""

    level: str
    message: str
    timestamp: datetime
    context: dict[str, object] | None = None


class EventDispatcher:
    """Route inbound push messages to listeners keyed by exact channel path.

    Listeners for a path are invoked in registration order. The same callable
    may be registered more than once; each registration is removed separately.
    """

    def __init__(self) -> None:
        self._listeners: defaultdict[str, list[PushListener]] = defaultdict(list)

    def add_listener(self, channel_path: str, listener: PushListener) -> None:
        self._listeners[channel_path].append(listener)

    def remove_listener(self, channel_path: str, listener: PushListener) -> bool:
        """Remove one registration of ``listener``; other listeners are untouched."""
        listeners = self._listeners.get(channel_path)
        if not listeners:
            return False
        try:
            listeners.remove(listener)
        except ValueError:
            return False
        if not listeners:
            self._listeners.pop(channel_path, None)
        return True

    def has_listeners(self, channel_path: str) -> bool:
        return bool(self._listeners.get(channel_path))

    def listener_count(self, channel_path: str) -> int:
        return len(self._listeners.get(channel_path, ()))

    def dispatch(self, channel_path: str, payload: Any) -> int:
        """Deliver ``payload`` to every listener of ``channel_path``.

        Returns the number of listeners invoked.
        """
        listeners = list(self._listeners.get(channel_path, ()))
        for listener in listeners:
            try:
                listener(payload)
            except Exception:
                logger.exception("Push listener for {} raised", channel_path)
        return len(listeners)

    def clear(self) -> None:
        """Detach every listener."""
        self._listeners.clear()
