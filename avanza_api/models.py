"""Client models using Pydantic v2."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Channel(str, Enum):
    """Push channels.

    Channels that take a sequence of account ids expect all of the user's
    account ids, regardless of which account the caller is interested in.
    """

    ACCOUNTS = "accounts"
    QUOTES = "quotes"
    ORDERDEPTHS = "orderdepths"
    TRADES = "trades"
    BROKERTRADESUMMARY = "brokertradesummary"
    POSITIONS = "positions"
    ORDERS = "orders"
    DEALS = "deals"


# Channels accepting a list of ids joined into one subscription path
MULTI_ID_CHANNELS = frozenset({Channel.ORDERS, Channel.DEALS, Channel.POSITIONS})


class InstrumentType(str, Enum):
    """Instrument type enumeration."""

    STOCK = "stock"
    FUND = "fund"
    BOND = "bond"
    OPTION = "option"
    FUTURE_FORWARD = "future_forward"
    CERTIFICATE = "certificate"
    WARRANT = "warrant"
    ETF = "exchange_traded_fund"
    INDEX = "index"
    PREMIUM_BOND = "premium_bond"
    SUBSCRIPTION_OPTION = "subscription_option"
    EQUITY_LINKED_BOND = "equity_linked_bond"
    CONVERTIBLE = "convertible"


class ChartPeriod(str, Enum):
    """Chart data period enumeration."""

    TODAY = "TODAY"
    ONE_WEEK = "ONE_WEEK"
    ONE_MONTH = "ONE_MONTH"
    THREE_MONTHS = "THREE_MONTHS"
    THIS_YEAR = "THIS_YEAR"
    ONE_YEAR = "ONE_YEAR"
    FIVE_YEARS = "FIVE_YEARS"


class InspirationList(str, Enum):
    HIGHEST_RATED_FUNDS = "HIGHEST_RATED_FUNDS"
    LOWEST_FEE_INDEX_FUNDS = "LOWEST_FEE_INDEX_FUNDS"
    BEST_DEVELOPMENT_FUNDS_LAST_THREE_MONTHS = "BEST_DEVELOPMENT_FUNDS_LAST_THREE_MONTHS"
    MOST_OWNED_FUNDS = "MOST_OWNED_FUNDS"


class TransactionType(str, Enum):
    OPTIONS = "options"
    FOREX = "forex"
    DEPOSIT_WITHDRAW = "deposit-withdraw"
    BUY_SELL = "buy-sell"
    DIVIDEND = "dividend"
    INTEREST = "interest"
    FOREIGN_TAX = "foreign-tax"


class OrderSide(str, Enum):
    """Order side enumeration."""

    BUY = "BUY"
    SELL = "SELL"


class Credentials(BaseModel):
    """Login credentials.

    When the server requests a second factor, either the current one-time code
    is given in ``totp`` or the shared secret to generate it in ``totp_secret``.
    Presence of username and password is checked by ``authenticate`` so the
    failure surfaces to its caller.
    """

    username: str = Field(default="", description="Login username")
    password: str = Field(default="", description="Login password", repr=False)
    totp: str | None = Field(default=None, description="Current one-time code")
    totp_secret: str | None = Field(
        default=None, description="Shared secret for one-time codes", repr=False
    )


class SessionInfo(BaseModel):
    """Result of a successful authentication."""

    security_token: str
    push_subscription_id: str
    customer_id: str
