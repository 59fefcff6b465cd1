"""Core infrastructure modules for the Avanza API client."""

from .config import AvanzaConfig, load_config
from .events import DiagnosticEvent, EventDispatcher, PushListener
from .telemetry import (
    CallbackTelemetrySink,
    FileTelemetrySink,
    LogTelemetrySink,
    TelemetryReporter,
    TelemetrySink,
    build_telemetry_reporter,
)

__all__ = [
    "AvanzaConfig",
    "load_config",
    "DiagnosticEvent",
    "EventDispatcher",
    "PushListener",
    "TelemetrySink",
    "TelemetryReporter",
    "LogTelemetrySink",
    "FileTelemetrySink",
    "CallbackTelemetrySink",
    "build_telemetry_reporter",
]
