"""Desired push subscriptions and their resync after reconnects."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger

from avanza_api.core.telemetry import TelemetryReporter
from avanza_api.transport import BayeuxTransport


def _ack_paths(message: dict[str, Any]) -> list[str]:
    """Return the channel paths an ack refers to; Bayeux allows one or a list."""
    paths = message.get("subscription")
    if isinstance(paths, str):
        return [paths]
    if isinstance(paths, list):
        return [path for path in paths if isinstance(path, str)]
    return []


@dataclass(slots=True)
class Subscription:
    """A channel path the caller wants to receive.

    ``requested_client_id`` and ``confirmed_client_id`` name the Bayeux client
    the subscribe message was sent on and acknowledged by. Both go stale when
    the transport hands out a new client id.
    """

    channel_path: str
    requested_client_id: str | None = None
    confirmed_client_id: str | None = None

    def settled_for(self, client_id: str | None) -> bool:
        return client_id is not None and client_id in (
            self.requested_client_id,
            self.confirmed_client_id,
        )


class SubscriptionRegistry:
    """Track desired subscriptions and replay them on every new Bayeux client."""

    def __init__(
        self, transport: BayeuxTransport, telemetry: TelemetryReporter | None = None
    ) -> None:
        self._transport = transport
        self._telemetry = telemetry
        self._subscriptions: dict[str, Subscription] = {}

    def __contains__(self, channel_path: object) -> bool:
        return channel_path in self._subscriptions

    def __len__(self) -> int:
        return len(self._subscriptions)

    @property
    def desired_paths(self) -> list[str]:
        return list(self._subscriptions)

    def get(self, channel_path: str) -> Subscription | None:
        return self._subscriptions.get(channel_path)

    def is_confirmed(self, channel_path: str) -> bool:
        subscription = self._subscriptions.get(channel_path)
        if subscription is None or not self._transport.connected:
            return False
        return subscription.confirmed_client_id == self._transport.client_id

    def subscribe(self, channel_path: str) -> bool:
        """Mark ``channel_path`` desired and send a subscribe when connected.

        Returns True when a subscribe message was sent now. While disconnected
        the request is deferred to the next :meth:`resubscribe_all`.
        """
        subscription = self._subscriptions.get(channel_path)
        if subscription is None:
            subscription = Subscription(channel_path)
            self._subscriptions[channel_path] = subscription
        if not self._transport.connected:
            return False
        if subscription.settled_for(self._transport.client_id):
            return False
        return self._request(subscription)

    def unsubscribe(self, channel_path: str) -> bool:
        """Forget ``channel_path`` and tell the server when connected."""
        subscription = self._subscriptions.pop(channel_path, None)
        if subscription is None or not self._transport.connected:
            return False
        return self._transport.send_unsubscribe(channel_path)

    def resubscribe_all(self, client_id: str) -> int:
        """Send subscribe for every desired path not yet settled on ``client_id``."""
        sent = 0
        for subscription in list(self._subscriptions.values()):
            if subscription.settled_for(client_id):
                continue
            if self._request(subscription):
                sent += 1
        if sent:
            logger.debug("Resubscribed {} push channel(s) on client {}", sent, client_id)
        return sent

    def _request(self, subscription: Subscription) -> bool:
        if not self._transport.send_subscribe(subscription.channel_path):
            return False
        subscription.requested_client_id = self._transport.client_id
        return True

    def handle_subscribe_ack(self, message: dict[str, Any]) -> None:
        client_id = self._current_client_for(message)
        if client_id is None:
            logger.debug("Ignoring stale subscribe ack for {}", message.get("subscription"))
            return
        for channel_path in _ack_paths(message):
            self._settle(channel_path, client_id, message)

    def _settle(self, channel_path: str, client_id: str, message: dict[str, Any]) -> None:
        subscription = self._subscriptions.get(channel_path)
        if subscription is None:
            logger.debug("Ignoring subscribe ack for revoked path {}", channel_path)
            return

        if message.get("successful"):
            subscription.confirmed_client_id = client_id
            return

        # Leave it unconfirmed so a later subscribe() or reconnect retries it
        subscription.requested_client_id = None
        logger.warning("Could not subscribe to {}: {}", channel_path, message.get("error"))
        if self._telemetry is not None:
            self._telemetry.warning(
                "push.subscribe_failed",
                context={"subscription": channel_path, "error": message.get("error")},
            )

    def handle_unsubscribe_ack(self, message: dict[str, Any]) -> None:
        if message.get("successful"):
            return
        channel_path = message.get("subscription")
        logger.debug("Could not unsubscribe from {}: {}", channel_path, message.get("error"))
        if self._telemetry is not None:
            self._telemetry.info(
                "push.unsubscribe_failed",
                context={"subscription": channel_path, "error": message.get("error")},
            )

    def _current_client_for(self, message: dict[str, Any]) -> str | None:
        """Return the live client id when ``message`` belongs to it, else None."""
        if not self._transport.connected:
            return None
        current = self._transport.client_id
        sender = message.get("clientId", current)
        return current if sender == current else None

    def clear(self) -> None:
        self._subscriptions.clear()
