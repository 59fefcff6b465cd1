"""Custom exceptions for Avanza API client operations."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class AvanzaError(Exception):
    """Base error for client failures."""


class AuthenticationError(AvanzaError):
    """Raised when authentication cannot be started or is rejected."""


class NotAuthenticatedError(AvanzaError):
    """Raised when an operation requires an authenticated session."""


class ChannelError(AvanzaError, ValueError):
    """Raised when a push channel is used with unsupported arguments."""


class RequestError(AvanzaError):
    """Raised when a REST call fails.

    ``status_code`` is None when the request never produced a response.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        headers: Mapping[str, str] | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.headers: Mapping[str, str] = headers or {}
        self.body = body
