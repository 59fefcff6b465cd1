"""Pytest configuration for shared fixtures."""

from __future__ import annotations

import pytest
from fakes import FakeClock, FakeConnector
from loguru import logger

from avanza_api.core.config import AvanzaConfig


@pytest.fixture(scope="session", autouse=True)
def silence_loguru_handlers() -> None:
    """Route Loguru output to a no-op sink during tests to avoid closed stream errors."""
    logger.remove()
    logger.add(lambda _: None, catch=True)
    yield


@pytest.fixture
def config() -> AvanzaConfig:
    return AvanzaConfig(backoff_floor_seconds=0.0, telemetry_file=None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()
