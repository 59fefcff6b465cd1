"""CLI tests for REST calls and push streaming."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

from avanza_api import cli
from avanza_api.core.config import AvanzaConfig
from avanza_api.errors import RequestError
from avanza_api.models import Credentials

runner = CliRunner()


class DummyClient:
    """Stub client recording authentication, calls and subscriptions."""

    def __init__(self, body: Any = None, error: Exception | None = None) -> None:
        self.body = body
        self.error = error
        self.credentials: Credentials | None = None
        self.calls: list[tuple[str, str]] = []
        self.subscriptions: list[tuple[str, Any]] = []
        self.unsubscribed = 0
        self.closed = False

    async def __aenter__(self) -> DummyClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.closed = True

    async def authenticate(self, credentials: Credentials) -> None:
        self.credentials = credentials

    async def call(self, method: str, path: str) -> Any:
        self.calls.append((method, path))
        if self.error is not None:
            raise self.error
        return self.body

    def subscribe(
        self, channel: str, ids: Any, callback: Callable[[Any], object]
    ) -> Callable[[], None]:
        self.subscriptions.append((channel, ids))
        callback({"lastPrice": 101.5})

        def unsubscribe() -> None:
            self.unsubscribed += 1

        return unsubscribe


@pytest.fixture
def config(tmp_path: Path) -> AvanzaConfig:
    return AvanzaConfig(username="user", password="secret", log_dir=tmp_path)


@pytest.fixture(autouse=True)
def patch_environment(monkeypatch: pytest.MonkeyPatch, config: AvanzaConfig) -> None:
    monkeypatch.setattr(cli, "load_config", lambda: config)
    monkeypatch.setattr(cli, "setup_logging", lambda *_args, **_kwargs: None)


def test_call_prints_json_body(monkeypatch: pytest.MonkeyPatch) -> None:
    dummy = DummyClient(body={"accounts": [{"id": "1"}]})
    monkeypatch.setattr(cli, "build_client", lambda config: dummy)

    result = runner.invoke(cli.app, ["call", "/_api/account/positions", "-X", "get"])

    assert result.exit_code == 0, result.stdout
    assert dummy.calls == [("get", "/_api/account/positions")]
    assert dummy.credentials == Credentials(username="user", password="secret")
    assert dummy.closed
    assert '"accounts"' in result.stdout


def test_call_failure_exits_non_zero(monkeypatch: pytest.MonkeyPatch) -> None:
    dummy = DummyClient(error=RequestError("GET /x returned 500", status_code=500))
    monkeypatch.setattr(cli, "build_client", lambda config: dummy)

    result = runner.invoke(cli.app, ["call", "/x"])

    assert result.exit_code == 1


def test_stream_subscribes_and_unsubscribes(monkeypatch: pytest.MonkeyPatch) -> None:
    dummy = DummyClient()
    monkeypatch.setattr(cli, "build_client", lambda config: dummy)

    result = runner.invoke(cli.app, ["stream", "quotes", "5479", "--duration", "0.01"])

    assert result.exit_code == 0, result.stdout
    assert dummy.subscriptions == [("quotes", "5479")]
    assert dummy.unsubscribed == 1
    assert "101.5" in result.stdout


def test_stream_passes_several_ids_as_list(monkeypatch: pytest.MonkeyPatch) -> None:
    dummy = DummyClient()
    monkeypatch.setattr(cli, "build_client", lambda config: dummy)

    result = runner.invoke(cli.app, ["stream", "orders", "1", "2", "-d", "0.01"])

    assert result.exit_code == 0, result.stdout
    assert dummy.subscriptions == [("orders", ["1", "2"])]


def test_missing_password_is_prompted(
    monkeypatch: pytest.MonkeyPatch, config: AvanzaConfig
) -> None:
    config.password = None
    dummy = DummyClient(body={})
    monkeypatch.setattr(cli, "build_client", lambda config: dummy)

    result = runner.invoke(cli.app, ["call", "/x"], input="typed-secret\n")

    assert result.exit_code == 0, result.stdout
    assert dummy.credentials is not None
    assert dummy.credentials.password == "typed-secret"
