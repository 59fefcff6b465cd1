"""Session authentication and renewal."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from loguru import logger

from avanza_api.backoff import BackoffScheduler
from avanza_api.core.config import AvanzaConfig
from avanza_api.core.constants import (
    AUTHENTICATE_ACTION,
    AUTHENTICATION_PATH,
    SECURITY_TOKEN_HEADER,
    TOTP_PATH,
    TOTP_TRANSACTION_COOKIE,
)
from avanza_api.core.telemetry import TelemetryReporter
from avanza_api.errors import AuthenticationError, RequestError
from avanza_api.models import Credentials, SessionInfo
from avanza_api.rest import RestClient, RestResponse
from avanza_api.totp import generate_code


@dataclass(slots=True)
class Session:
    """Authenticated session state. Mutated only by :class:`SessionAuthenticator`."""

    security_token: str | None = None
    subscription_id: str | None = None
    customer_id: str | None = None
    authenticated: bool = False
    credentials: Credentials | None = None
    expires_at: datetime | None = None

    def invalidate(self) -> None:
        """Mark the session unusable; credentials are kept for re-authentication."""
        self.authenticated = False
        self.security_token = None
        self.subscription_id = None

    def clear(self) -> None:
        self.invalidate()
        self.customer_id = None
        self.credentials = None
        self.expires_at = None


class SessionAuthenticator:
    """Produce and renew the security token and push subscription id.

    A successful authentication arms a renewal shortly before the configured
    inactivity timeout elapses and notifies ``on_authenticated`` so the push
    socket can be rebound to the new subscription id. Renewals that fail are
    retried with backoff until they succeed or :meth:`disconnect` is called.
    """

    def __init__(
        self,
        config: AvanzaConfig,
        rest: RestClient,
        backoff: BackoffScheduler,
        *,
        on_authenticated: Callable[[Session], None] | None = None,
        telemetry: TelemetryReporter | None = None,
    ) -> None:
        self.config = config
        self.session = Session()
        self._rest = rest
        self._backoff = backoff
        self._on_authenticated = on_authenticated
        self._telemetry = telemetry
        self._reauth_task: asyncio.Task[None] | None = None
        self.scheduled_renewals = 0
        self.renewal_attempts = 0

    @property
    def is_authenticated(self) -> bool:
        return self.session.authenticated

    async def authenticate(self, credentials: Credentials | None) -> SessionInfo:
        """Authenticate with primary credentials and, when requested, a one-time code.

        Raises:
            AuthenticationError: If input is incomplete or the server flow cannot proceed
            RequestError: If the server rejects a request
        """
        credentials = self._validate(credentials)
        self.session.credentials = credentials

        try:
            logger.debug("Starting authentication process...")
            response = await self._rest.request(
                "POST",
                AUTHENTICATION_PATH,
                {
                    "maxInactiveMinutes": self.config.session_timeout_minutes,
                    "password": credentials.password,
                    "username": credentials.username,
                },
            )
            body = response.body if isinstance(response.body, dict) else {}
            second_factor = body.get("twoFactorLogin")
            if second_factor is not None:
                response = await self._submit_second_factor(credentials, second_factor)
            info = self._store_session(response)
        except Exception:
            self.session.invalidate()
            raise

        logger.info("Authenticated as customer {}", info.customer_id)
        self.schedule_reauth((self.config.session_timeout_minutes - 1) * 60)
        if self._on_authenticated is not None:
            self._on_authenticated(self.session)
        return info

    def _validate(self, credentials: Credentials | None) -> Credentials:
        if credentials is None:
            raise AuthenticationError("Missing credentials.")
        if not credentials.username:
            raise AuthenticationError("Missing credentials.username.")
        if not credentials.password:
            raise AuthenticationError("Missing credentials.password.")
        if not self.config.session_timeout_in_range():
            raise AuthenticationError(
                f"Session timeout not in range {self.config.min_session_minutes} - "
                f"{self.config.max_session_minutes} minutes."
            )
        return credentials

    async def _submit_second_factor(
        self, credentials: Credentials, options: Any
    ) -> RestResponse:
        if not isinstance(options, dict):
            raise AuthenticationError(f"Malformed second factor request: {options!r}")
        method = options.get("method")
        if method != "TOTP":
            raise AuthenticationError(f"Unsupported second factor method {method}")

        if credentials.totp_secret:
            try:
                code = generate_code(credentials.totp_secret)
            except ValueError as exc:
                raise AuthenticationError("credentials.totp_secret is not valid base32") from exc
        else:
            code = credentials.totp
        if not code:
            raise AuthenticationError("Missing credentials.totp or credentials.totp_secret")

        logger.debug("Two-factor authentication required, sending TOTP code...")
        transaction_id = options.get("transactionId", "")
        return await self._rest.request(
            "POST",
            TOTP_PATH,
            {"method": "TOTP", "totpCode": code},
            headers={"Cookie": f"{TOTP_TRANSACTION_COOKIE}={transaction_id}"},
        )

    def _store_session(self, response: RestResponse) -> SessionInfo:
        body = response.body if isinstance(response.body, dict) else {}
        token = response.headers.get(SECURITY_TOKEN_HEADER)
        subscription_id = body.get("pushSubscriptionId")
        customer_id = body.get("customerId")
        if not token or not subscription_id or customer_id in (None, ""):
            raise AuthenticationError("Authentication response is missing session fields")

        session = self.session
        session.security_token = token
        session.subscription_id = str(subscription_id)
        session.customer_id = str(customer_id)
        session.authenticated = True
        session.expires_at = datetime.now(tz=UTC) + timedelta(
            minutes=self.config.session_timeout_minutes
        )
        return SessionInfo(
            security_token=session.security_token,
            push_subscription_id=session.subscription_id,
            customer_id=session.customer_id,
        )

    async def reauthenticate(self) -> SessionInfo:
        """Drop the current session and authenticate again with stored credentials."""
        self.session.invalidate()
        self._rest.clear_cookies()
        return await self.authenticate(self.session.credentials)

    def schedule_reauth(self, delay: float | None = None) -> None:
        """Arm a renewal after ``delay`` seconds, superseding any pending one.

        Without a delay the backoff scheduler decides when to renew.
        """
        self._cancel_reauth()
        if delay is None:
            delay = self._backoff.delay_for(AUTHENTICATE_ACTION)
        self.scheduled_renewals += 1
        logger.debug("Session renewal scheduled in {:.1f}s", delay)
        self._reauth_task = asyncio.get_running_loop().create_task(self._renew(delay))

    async def _renew(self, delay: float) -> None:
        await asyncio.sleep(delay)
        while True:
            credentials = self.session.credentials
            if credentials is None:
                logger.warning("Session renewal skipped: no stored credentials")
                return
            self.renewal_attempts += 1
            try:
                await self.authenticate(credentials)
            except (AuthenticationError, RequestError) as exc:
                logger.warning("Could not authenticate: {}", exc)
            except Exception:
                logger.exception("Unexpected error while renewing session")
            else:
                return
            if self._telemetry is not None:
                self._telemetry.warning(
                    "auth.renewal_failed", context={"attempt": self.renewal_attempts}
                )
            await asyncio.sleep(self._backoff.delay_for(AUTHENTICATE_ACTION))

    def handle_push_rejected(self) -> None:
        """Invalidate the push subscription id and renew the session."""
        logger.warning("Push handshake rejected; renewing session")
        self.session.subscription_id = None
        self.schedule_reauth()

    def _cancel_reauth(self) -> None:
        task = self._reauth_task
        self._reauth_task = None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # A renewal that succeeds re-arms the next one from inside its own task
        if task is not current:
            task.cancel()

    @property
    def renewal_pending(self) -> bool:
        return self._reauth_task is not None and not self._reauth_task.done()

    def disconnect(self) -> None:
        """Cancel pending renewal and forget the session."""
        self._cancel_reauth()
        self.session.clear()
        self._rest.clear_cookies()
