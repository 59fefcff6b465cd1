"""Common constants shared across the client."""

from __future__ import annotations

from pathlib import Path

BASE_URL = "https://www.avanza.se"
PUSH_URL = "wss://www.avanza.se/_push/cometd"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/133.0.0.0 Safari/537.36"
)

MIN_INACTIVE_MINUTES = 30
MAX_INACTIVE_MINUTES = 60 * 24

MAX_BACKOFF_SECONDS = 120.0
BACKOFF_FLOOR_SECONDS = 0.5
BACKOFF_HOT_WINDOW_FACTOR = 5

LIVENESS_INTERVAL_SECONDS = 5.0
LIVENESS_GRACE_SECONDS = 5.0
DEFAULT_ADVICE_TIMEOUT_SECONDS = 30.0

DEFAULT_LOG_DIR = Path("logs")

# Backoff action names
HANDSHAKE_ACTION = "handshake"
WEBSOCKET_ACTION = "websocket"
AUTHENTICATE_ACTION = "authenticate"

# Bayeux meta channels
META_HANDSHAKE = "/meta/handshake"
META_CONNECT = "/meta/connect"
META_SUBSCRIBE = "/meta/subscribe"
META_UNSUBSCRIBE = "/meta/unsubscribe"
META_DISCONNECT = "/meta/disconnect"

BAYEUX_VERSION = "1.0"
SUPPORTED_CONNECTION_TYPES = ("websocket", "long-polling", "callback-polling")
CONNECTION_TYPE = "websocket"

# Authentication
SECURITY_TOKEN_HEADER = "x-securitytoken"
INVALID_SESSION_HEADER = "aza-invalid-session"
TOTP_TRANSACTION_COOKIE = "AZAMFATRANSACTION"

# REST paths
AUTHENTICATION_PATH = "/_api/authentication/sessions/usercredentials"
TOTP_PATH = "/_api/authentication/sessions/totp"
POSITIONS_PATH = "/_api/account/positions"
ACCOUNT_POSITIONS_PATH = "/_api/account/positions/{0}"
OVERVIEW_PATH = "/_api/trading-critical/rest/accounts"
ACCOUNT_OVERVIEW_PATH = "/_api/account-overview/overview/account/{0}"
DEALS_AND_ORDERS_PATH = "/_api/account/dealsandorders"
WATCHLISTS_PATH = "/_api/usercontent/watchlist"
WATCHLISTS_ADD_DELETE_PATH = "/_api/usercontent/watchlist/{0}/orderbooks/{1}"
INSTRUMENT_PATH = "/_api/market-guide/{0}/{1}"
ORDERBOOK_PATH = "/_api/order/{0}"
ORDERBOOK_LIST_PATH = "/_api/market-guide/orderbooklist/{0}"
CHARTDATA_PATH = "/_api/price-chart/stock/{0}"
ORDER_PLACE_PATH = "/_api/trading-critical/rest/order/new"
ORDER_DELETE_PATH = "/_api/trading-critical/rest/order/delete"
ORDER_EDIT_PATH = "/_api/order/{0}/{1}"
ORDER_GET_PATH = "/_api/order/{0}"
SEARCH_PATH = "/_api/search/filtered-search"
INSPIRATION_LIST_PATH = "/_api/marketing/inspirationlist/{0}"
TRANSACTIONS_PATH = "/_api/account/transactions/{0}"
