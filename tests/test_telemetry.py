"""Tests for telemetry utilities."""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

from loguru import logger

from avanza_api.core.events import DiagnosticEvent
from avanza_api.core.telemetry import (
    CallbackTelemetrySink,
    FileTelemetrySink,
    TelemetryReporter,
    build_telemetry_reporter,
)


def test_file_telemetry_sink_writes_json(tmp_path: Path) -> None:
    path = tmp_path / "telemetry.jsonl"
    reporter = TelemetryReporter(FileTelemetrySink(path))

    reporter.warning("push.liveness_stale", context={"age": Decimal("12.5")})

    content = path.read_text(encoding="utf-8").strip()
    assert content, "Expected telemetry file to contain a record"
    record = json.loads(content)

    assert record["message"] == "push.liveness_stale"
    assert record["level"] == "WARNING"
    assert record["context"]["age"] == "12.5"


def test_callback_sink_receives_event() -> None:
    events: list[DiagnosticEvent] = []
    reporter = TelemetryReporter(CallbackTelemetrySink(events.append))

    reporter.info("push.restart", context={"count": 3})

    assert len(events) == 1
    assert events[0].message == "push.restart"
    assert events[0].level == "INFO"
    assert events[0].context == {"count": 3}


def test_build_reporter_combines_sinks(tmp_path: Path) -> None:
    events: list[DiagnosticEvent] = []
    path = tmp_path / "nested" / "telemetry.jsonl"
    reporter = build_telemetry_reporter(log_sink=False, file_path=path, callback=events.append)

    reporter.warning("auth.renewal_failed", context={"attempt": 2, "paths": ("a", "b")})

    record = json.loads(path.read_text(encoding="utf-8"))
    assert record["context"] == {"attempt": 2, "paths": ["a", "b"]}
    assert [event.level for event in events] == ["WARNING"]


def test_reporter_without_sinks_writes_to_log() -> None:
    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(str(message)), format="{message}")
    try:
        TelemetryReporter().info("push.restart", context={"count": 1})
    finally:
        logger.remove(handler_id)

    assert any("push.restart" in message for message in messages)
