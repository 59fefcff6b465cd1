"""Diagnostics for the push channel and session renewal.

Components report named events such as ``push.restart`` or
``auth.renewal_failed`` through a :class:`TelemetryReporter`, which hands
each event to every configured sink.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from loguru import logger

from avanza_api.core.events import DiagnosticEvent


class TelemetrySink(Protocol):
    """Protocol implemented by telemetry sinks."""

    def emit(self, event: DiagnosticEvent) -> None: ...


class LogTelemetrySink:
    """Write events to the loguru logger at their own level."""

    def emit(self, event: DiagnosticEvent) -> None:
        logger.log(event.level, "[telemetry] {} {}", event.message, event.context or "")


class CallbackTelemetrySink:
    """Hand events to an in-process callable, e.g. a metrics adapter."""

    def __init__(self, callback: Callable[[DiagnosticEvent], object]) -> None:
        self._callback = callback

    def emit(self, event: DiagnosticEvent) -> None:
        self._callback(event)


class FileTelemetrySink:
    """Append events to a JSON lines file.

    Context values JSON cannot represent are written as their ``str()``.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, event: DiagnosticEvent) -> None:
        line = json.dumps(
            {
                "timestamp": event.timestamp.isoformat(),
                "level": event.level,
                "message": event.message,
                "context": event.context,
            },
            separators=(",", ":"),
            default=str,
        )
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")


class TelemetryReporter:
    """Fan diagnostic events out to sinks; logs them when no sink is given."""

    def __init__(self, *sinks: TelemetrySink) -> None:
        self._sinks: tuple[TelemetrySink, ...] = sinks or (LogTelemetrySink(),)

    def info(self, message: str, *, context: dict[str, object] | None = None) -> None:
        self._emit("INFO", message, context)

    def warning(self, message: str, *, context: dict[str, object] | None = None) -> None:
        self._emit("WARNING", message, context)

    def _emit(self, level: str, message: str, context: dict[str, object] | None) -> None:
        event = DiagnosticEvent(
            level=level,
            message=message,
            timestamp=datetime.now(tz=UTC),
            context=context,
        )
        for sink in self._sinks:
            sink.emit(event)


def build_telemetry_reporter(
    *,
    log_sink: bool = True,
    file_path: Path | None = None,
    callback: Callable[[DiagnosticEvent], object] | None = None,
) -> TelemetryReporter:
    """Assemble a reporter from the sinks selected by configuration."""
    sinks: list[TelemetrySink] = []
    if log_sink:
        sinks.append(LogTelemetrySink())
    if file_path is not None:
        sinks.append(FileTelemetrySink(file_path))
    if callback is not None:
        sinks.append(CallbackTelemetrySink(callback))
    return TelemetryReporter(*sinks)
