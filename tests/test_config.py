"""Tests for AvanzaConfig settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from avanza_api.core.config import AvanzaConfig, load_config


def test_config_default_push_settings() -> None:
    """Test that config has sensible default push channel settings."""
    config = AvanzaConfig()

    # Backoff defaults
    assert config.max_backoff_seconds == 120.0
    assert config.backoff_floor_seconds == 0.5

    # Liveness defaults
    assert config.liveness_interval_seconds == 5.0
    assert config.liveness_grace_seconds == 5.0
    assert config.advice_timeout_seconds == 30.0

    # Session defaults
    assert config.session_timeout_minutes == 1440
    assert config.session_timeout_in_range()


def test_config_reads_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Test environment variables override defaults."""
    monkeypatch.setenv("AVANZA_SESSION_TIMEOUT_MINUTES", "60")
    monkeypatch.setenv("AVANZA_PASSWORD", "hunter2")
    monkeypatch.setenv("AVANZA_LOG_DIR", str(tmp_path))

    config = load_config()

    assert config.session_timeout_minutes == 60
    assert config.password is not None
    assert config.password.get_secret_value() == "hunter2"
    assert "hunter2" not in repr(config)
    assert config.log_dir == tmp_path


@pytest.mark.parametrize("minutes", [29, 1441])
def test_session_timeout_outside_bounds(minutes: int) -> None:
    config = AvanzaConfig(session_timeout_minutes=minutes)

    assert not config.session_timeout_in_range()


def test_config_rejects_invalid_timing() -> None:
    """Test validation of backoff and liveness knobs."""
    with pytest.raises(ValidationError):
        AvanzaConfig(max_backoff_seconds=0)

    with pytest.raises(ValidationError):
        AvanzaConfig(liveness_interval_seconds=-1)

    with pytest.raises(ValidationError):
        AvanzaConfig(backoff_floor_seconds=-0.5)
