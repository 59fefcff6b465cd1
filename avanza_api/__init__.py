"""Avanza API - unofficial client with a self-healing real-time push channel."""

__version__ = "0.1.0"

from avanza_api.backoff import BackoffScheduler
from avanza_api.client import AvanzaClient
from avanza_api.core.config import AvanzaConfig, load_config
from avanza_api.core.events import EventDispatcher
from avanza_api.errors import (
    AuthenticationError,
    AvanzaError,
    ChannelError,
    NotAuthenticatedError,
    RequestError,
)
from avanza_api.models import (
    MULTI_ID_CHANNELS,
    Channel,
    ChartPeriod,
    Credentials,
    InspirationList,
    InstrumentType,
    OrderSide,
    SessionInfo,
    TransactionType,
)
from avanza_api.session import Session, SessionAuthenticator
from avanza_api.subscriptions import Subscription, SubscriptionRegistry
from avanza_api.totp import generate_code
from avanza_api.transport import BayeuxTransport, TransportState

__all__ = [
    "AvanzaClient",
    "AvanzaConfig",
    "load_config",
    "BackoffScheduler",
    "EventDispatcher",
    "AvanzaError",
    "AuthenticationError",
    "NotAuthenticatedError",
    "ChannelError",
    "RequestError",
    "Channel",
    "MULTI_ID_CHANNELS",
    "ChartPeriod",
    "Credentials",
    "InspirationList",
    "InstrumentType",
    "OrderSide",
    "SessionInfo",
    "TransactionType",
    "Session",
    "SessionAuthenticator",
    "Subscription",
    "SubscriptionRegistry",
    "BayeuxTransport",
    "TransportState",
    "generate_code",
]
