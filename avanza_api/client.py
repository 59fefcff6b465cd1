"""Avanza API client: authenticated REST calls and real-time push subscriptions."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping
from types import TracebackType
from typing import Any
from urllib.parse import urlencode

from loguru import logger

from avanza_api.backoff import BackoffScheduler
from avanza_api.core import constants
from avanza_api.core.config import AvanzaConfig, load_config
from avanza_api.core.events import EventDispatcher, PushListener
from avanza_api.core.telemetry import TelemetryReporter, build_telemetry_reporter
from avanza_api.errors import ChannelError, NotAuthenticatedError, RequestError
from avanza_api.models import MULTI_ID_CHANNELS, Channel, Credentials, SessionInfo
from avanza_api.rest import RestClient, RestResponse
from avanza_api.session import Session, SessionAuthenticator
from avanza_api.subscriptions import SubscriptionRegistry
from avanza_api.transport import BayeuxTransport, SocketConnector


def _value(item: Any) -> str:
    return str(getattr(item, "value", item))


class AvanzaClient:
    """Unofficial Avanza client.

    Owns one session, one push socket and the subscriptions made through it.
    Everything runs on the caller's event loop; ``subscribe`` and the
    function it returns must be called from within that loop.

    Example::

        async with AvanzaClient() as client:
            await client.authenticate(Credentials(username=..., password=..., totp_secret=...))
            unsubscribe = client.subscribe(Channel.QUOTES, "5479", print)
    """

    def __init__(
        self,
        config: AvanzaConfig | None = None,
        *,
        rest: RestClient | None = None,
        connect: SocketConnector | None = None,
        clock: Callable[[], float] = time.monotonic,
        telemetry: TelemetryReporter | None = None,
    ) -> None:
        self.config = config or load_config()
        self.telemetry = telemetry or build_telemetry_reporter(
            file_path=self.config.telemetry_file
        )
        self.backoff = BackoffScheduler(
            max_backoff=self.config.max_backoff_seconds,
            floor=self.config.backoff_floor_seconds,
            clock=clock,
        )
        self.rest = rest or RestClient(self.config)
        self.dispatcher = EventDispatcher()
        self.authenticator = SessionAuthenticator(
            self.config,
            self.rest,
            self.backoff,
            on_authenticated=self._on_authenticated,
            telemetry=self.telemetry,
        )
        self.transport = BayeuxTransport(
            self.config,
            self.backoff,
            self.dispatcher,
            subscription_id=lambda: self.session.subscription_id,
            on_handshake_rejected=self.authenticator.handle_push_rejected,
            connect=connect,
            clock=clock,
            telemetry=self.telemetry,
        )
        self.subscriptions = SubscriptionRegistry(self.transport, telemetry=self.telemetry)
        self.transport.attach_registry(self.subscriptions)

    @property
    def session(self) -> Session:
        return self.authenticator.session

    @property
    def is_authenticated(self) -> bool:
        return self.session.authenticated

    async def __aenter__(self) -> AvanzaClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # Session

    async def authenticate(self, credentials: Credentials | Mapping[str, Any]) -> SessionInfo:
        """Authenticate the client.

        If a second factor is requested, either the current code is given in
        ``totp`` or the secret to generate codes in ``totp_secret``.
        """
        if not isinstance(credentials, Credentials):
            credentials = Credentials.model_validate(credentials)
        return await self.authenticator.authenticate(credentials)

    def _on_authenticated(self, session: Session) -> None:
        # A socket bound to the previous subscription id is useless after renewal
        if self.transport.started:
            self.transport.restart()

    def disconnect(self) -> None:
        """Disconnect by simulating a client that just goes away."""
        self.authenticator.disconnect()
        self.dispatcher.clear()
        self.transport.shutdown()
        # The next socket starts without subscriptions
        self.subscriptions.clear()
        logger.info("Disconnected from Avanza")

    async def aclose(self) -> None:
        """Disconnect and release the HTTP connection pool."""
        self.disconnect()
        await self.rest.aclose()

    # Push subscriptions

    def subscribe(
        self,
        channel: Channel | str,
        ids: str | int | Iterable[str | int],
        callback: PushListener,
    ) -> Callable[[], None]:
        """Subscribe to real-time data.

        Args:
            channel: Channel to listen on
            ids: One id, or several for channels accepting a list of account ids
            callback: Called with the ``data`` of every message on the channel

        Returns:
            Function removing exactly this callback

        Raises:
            NotAuthenticatedError: If no push subscription id is available
            ChannelError: If several ids are given for a single-id channel
        """
        if not self.session.subscription_id:
            raise NotAuthenticatedError("Expected to be authenticated before subscribing.")

        channel_name = _value(channel)
        if isinstance(ids, (str, int)):
            id_part = str(ids)
        else:
            if channel_name not in {item.value for item in MULTI_ID_CHANNELS}:
                raise ChannelError(
                    f"Channel {channel_name} does not support multiple ids as input."
                )
            id_part = ",".join(str(item) for item in ids)

        self.transport.start()
        channel_path = f"/{channel_name}/{id_part}"
        self.dispatcher.add_listener(channel_path, callback)
        self.subscriptions.subscribe(channel_path)

        def unsubscribe() -> None:
            if not self.session.subscription_id:
                raise NotAuthenticatedError("Expected to be authenticated before unsubscribing.")
            if not self.transport.started:
                raise NotAuthenticatedError("Expected to be initialized before unsubscribing.")
            if not self.dispatcher.remove_listener(channel_path, callback):
                return
            if not self.dispatcher.has_listeners(channel_path):
                self.subscriptions.unsubscribe(channel_path)

        return unsubscribe

    # REST

    async def call(self, method: str = "GET", path: str = "", data: Any = None) -> Any:
        """Make an authenticated call to the API and return the parsed body.

        A dangling question mark is removed from ``path``. When the server
        reports the session as invalid, the client re-authenticates with the
        stored credentials and retries the call once.
        """
        if path.endswith("?"):
            path = path[:-1]
        try:
            response = await self._authorized_request(method, path, data)
        except RequestError as exc:
            if not self._session_invalid(exc.headers):
                raise
            logger.debug("Session invalid, attempting to re-authenticate...")
            await self.authenticator.reauthenticate()
            response = await self._authorized_request(method, path, data)
        else:
            if self._session_invalid(response.headers):
                logger.debug("Session invalid, attempting to re-authenticate...")
                await self.authenticator.reauthenticate()
                response = await self._authorized_request(method, path, data)
        return response.body

    async def _authorized_request(self, method: str, path: str, data: Any) -> RestResponse:
        if not self.session.authenticated:
            raise NotAuthenticatedError("Expected to be authenticated before calling.")
        return await self.rest.request(
            method,
            path,
            data,
            headers={"X-SecurityToken": self.session.security_token or ""},
        )

    @staticmethod
    def _session_invalid(headers: Mapping[str, str]) -> bool:
        return headers.get(constants.INVALID_SESSION_HEADER) == "-"

    async def get_overview(self) -> Any:
        """Get an overview of the user's accounts."""
        return await self.call("GET", constants.OVERVIEW_PATH)

    async def get_account_overview(self, account_id: str) -> Any:
        return await self.call("GET", constants.ACCOUNT_OVERVIEW_PATH.format(account_id))

    async def get_positions(self) -> Any:
        return await self.call("GET", constants.POSITIONS_PATH)

    async def get_account_positions(self, account_id: str) -> Any:
        return await self.call("GET", constants.ACCOUNT_POSITIONS_PATH.format(account_id))

    async def get_deals_and_orders(self) -> Any:
        return await self.call("GET", constants.DEALS_AND_ORDERS_PATH)

    async def get_transactions(self, account_or_type: str, **filters: Any) -> Any:
        """Get transactions for an account or of a transaction type.

        Filters are passed as query parameters (``from``/``to`` dates use the
        ``from_``/``to`` keywords). A list of ``orderbookId`` values is joined
        with commas.
        """
        path = constants.TRANSACTIONS_PATH.format(_value(account_or_type))
        query: dict[str, Any] = {}
        for key, value in filters.items():
            if value is None:
                continue
            if isinstance(value, (list, tuple)):
                value = ",".join(str(item) for item in value)
            query[key.rstrip("_")] = value
        return await self.call("GET", f"{path}?{urlencode(query)}" if query else path)

    async def get_watchlists(self) -> Any:
        return await self.call("GET", constants.WATCHLISTS_PATH)

    async def add_to_watchlist(self, instrument_id: str, watchlist_id: str) -> Any:
        path = constants.WATCHLISTS_ADD_DELETE_PATH.format(watchlist_id, instrument_id)
        return await self.call("PUT", path)

    async def remove_from_watchlist(self, instrument_id: str, watchlist_id: str) -> Any:
        path = constants.WATCHLISTS_ADD_DELETE_PATH.format(watchlist_id, instrument_id)
        return await self.call("DELETE", path)

    async def get_instrument(self, instrument_type: str, instrument_id: str) -> Any:
        path = constants.INSTRUMENT_PATH.format(_value(instrument_type).lower(), instrument_id)
        return await self.call("GET", path)

    async def get_orderbook(self, instrument_type: str, orderbook_id: str) -> Any:
        path = constants.ORDERBOOK_PATH.format(_value(instrument_type).lower())
        return await self.call("GET", f"{path}?{urlencode({'orderbookId': orderbook_id})}")

    async def get_orderbooks(self, orderbook_ids: Iterable[str]) -> Any:
        path = constants.ORDERBOOK_LIST_PATH.format(",".join(orderbook_ids))
        return await self.call("GET", f"{path}?{urlencode({'sort': 'name'})}")

    async def get_chart_data(self, orderbook_id: str, period: str) -> Any:
        path = constants.CHARTDATA_PATH.format(orderbook_id)
        query = urlencode({"timePeriod": _value(period).lower()})
        return await self.call("GET", f"{path}?{query}")

    async def get_inspiration_lists(self) -> Any:
        return await self.call("GET", constants.INSPIRATION_LIST_PATH.format(""))

    async def get_inspiration_list(self, list_type: str) -> Any:
        return await self.call("GET", constants.INSPIRATION_LIST_PATH.format(_value(list_type)))

    async def place_order(self, order: Mapping[str, Any]) -> Any:
        """Place an order.

        ``order`` carries ``accountId``, ``orderbookId``, ``side``, ``price``,
        ``validUntil`` (YYYY-MM-DD) and ``volume``.
        """
        return await self.call("POST", constants.ORDER_PLACE_PATH, dict(order))

    async def get_order(self, instrument_type: str, account_id: str, order_id: str) -> Any:
        path = constants.ORDER_GET_PATH.format(_value(instrument_type).lower())
        query = urlencode({"accountId": account_id, "orderId": order_id})
        return await self.call("GET", f"{path}?{query}")

    async def edit_order(
        self, instrument_type: str, order_id: str, order: Mapping[str, Any]
    ) -> Any:
        path = constants.ORDER_EDIT_PATH.format(_value(instrument_type).lower(), order_id)
        return await self.call("PUT", path, {**order, "orderCondition": "NORMAL"})

    async def delete_order(self, account_id: str, order_id: str) -> Any:
        return await self.call(
            "POST", constants.ORDER_DELETE_PATH, {"accountId": account_id, "orderId": order_id}
        )

    async def search(
        self, query: str, instrument_type: str | None = None, limit: int = 100
    ) -> Any:
        """Free text search for an instrument."""
        options = {
            "query": query,
            "searchFilter": {
                "types": [_value(instrument_type).upper()] if instrument_type else [],
            },
            "pagination": {"from": 0, "size": limit},
        }
        return await self.call("POST", constants.SEARCH_PATH, options)
