"""Tests for retry delay computation."""

from __future__ import annotations

import pytest
from fakes import FakeClock

from avanza_api.backoff import BackoffScheduler


@pytest.fixture
def backoff(clock: FakeClock) -> BackoffScheduler:
    return BackoffScheduler(max_backoff=120.0, floor=0.5, clock=clock)


def test_first_attempt_is_immediate(backoff: BackoffScheduler) -> None:
    assert backoff.delay_for("handshake") == 0.0
    assert backoff.last_attempt("handshake") is not None


def test_delay_grows_with_elapsed_time(backoff: BackoffScheduler, clock: FakeClock) -> None:
    backoff.delay_for("handshake")

    clock.advance(1.0)
    assert backoff.delay_for("handshake") == 2.5

    clock.advance(2.0)
    assert backoff.delay_for("handshake") == 6.5


def test_actions_are_tracked_separately(backoff: BackoffScheduler, clock: FakeClock) -> None:
    backoff.delay_for("handshake")
    clock.advance(3.0)

    assert backoff.delay_for("websocket") == 0.0
    assert backoff.delay_for("handshake") == 6.5


def test_delay_is_capped_and_restarts_growth(
    backoff: BackoffScheduler, clock: FakeClock
) -> None:
    backoff.delay_for("authenticate")
    clock.advance(100.0)

    assert backoff.delay_for("authenticate") == 120.0
    # Reaching the cap re-records the attempt
    clock.advance(1.0)
    assert backoff.delay_for("authenticate") == 2.5


def test_quiet_period_resets(backoff: BackoffScheduler, clock: FakeClock) -> None:
    backoff.delay_for("websocket")
    clock.advance(backoff.hot_window)

    assert backoff.delay_for("websocket") == 0.0


def test_delays_never_decrease_within_window(
    backoff: BackoffScheduler, clock: FakeClock
) -> None:
    backoff.delay_for("handshake")
    delays = []
    for _ in range(20):
        clock.advance(1.5)
        delays.append(backoff.delay_for("handshake"))
        if delays[-1] == backoff.max_backoff:
            break

    assert delays == sorted(delays)
    assert all(0 < delay <= 120.0 for delay in delays)


def test_reset_forgets_action(backoff: BackoffScheduler, clock: FakeClock) -> None:
    backoff.delay_for("handshake")
    clock.advance(5.0)

    backoff.reset("handshake")

    assert backoff.last_attempt("handshake") is None
    assert backoff.delay_for("handshake") == 0.0
