"""Per-action retry delay computation."""

from __future__ import annotations

import time
from collections.abc import Callable

from avanza_api.core.constants import (
    BACKOFF_FLOOR_SECONDS,
    BACKOFF_HOT_WINDOW_FACTOR,
    MAX_BACKOFF_SECONDS,
)


class BackoffScheduler:
    """Compute growing retry delays per named action.

    The first request for an action returns 0 and records the time. While
    further requests arrive within the hot window (``5 * max_backoff``) the
    delay is twice the time elapsed since the recorded attempt plus a fixed
    floor, capped at ``max_backoff``. Reaching the cap re-records the time so
    the sequence starts growing again. A request after a quiet period longer
    than the hot window resets the action and returns 0.

    Use it to avoid hammering the server when reacting to asynchronous events::

        loop.call_later(backoff.delay_for("websocket"), reopen)
    """

    def __init__(
        self,
        *,
        max_backoff: float = MAX_BACKOFF_SECONDS,
        floor: float = BACKOFF_FLOOR_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_backoff = max_backoff
        self.floor = floor
        self._clock = clock
        self._last_attempts: dict[str, float] = {}

    @property
    def hot_window(self) -> float:
        return self.max_backoff * BACKOFF_HOT_WINDOW_FACTOR

    def delay_for(self, action: str) -> float:
        """Return the delay in seconds to wait before performing ``action``."""
        now = self._clock()
        last = self._last_attempts.get(action)
        if last is None or now - last >= self.hot_window:
            self._last_attempts[action] = now
            return 0.0

        delay = (now - last) * 2 + self.floor
        if delay > self.max_backoff:
            delay = self.max_backoff
            self._last_attempts[action] = now
        return delay

    def reset(self, action: str) -> None:
        """Forget the recorded attempt for ``action``."""
        self._last_attempts.pop(action, None)

    def last_attempt(self, action: str) -> float | None:
        return self._last_attempts.get(action)
