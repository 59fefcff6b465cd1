"""HTTP transport for the Avanza REST API."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

from avanza_api.core.config import AvanzaConfig
from avanza_api.errors import RequestError


@dataclass(frozen=True, slots=True)
class RestResponse:
    """Parsed response of a successful REST request."""

    status_code: int
    headers: httpx.Headers
    body: Any


class RestClient:
    """Thin async wrapper around ``httpx.AsyncClient``.

    Responses are parsed as JSON when possible. Non-2xx responses and
    transport failures raise :class:`RequestError`. Cookies set by the server
    are kept in the client's jar and sent on subsequent requests.
    """

    def __init__(self, config: AvanzaConfig, http_client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._http = http_client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.request_timeout,
        )
        self._http.headers.update(
            {
                "Accept": "application/json, text/plain, */*",
                "Content-Type": "application/json;charset=UTF-8",
                "User-Agent": config.user_agent,
            }
        )

    async def request(
        self,
        method: str,
        path: str,
        data: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> RestResponse:
        """Send a request and return the parsed response.

        Raises:
            RequestError: On transport failure or a non-2xx status
        """
        method = method.upper()
        payload = data if data is not None else {}
        try:
            response = await self._http.request(
                method,
                path,
                json=None if method == "GET" else payload,
                headers=dict(headers) if headers else None,
            )
        except httpx.HTTPError as exc:
            logger.debug("Request {} {} failed: {}", method, path, exc)
            raise RequestError(f"{method} {path} failed: {exc}") from exc

        logger.debug("{} {} - Status: {}", method, path, response.status_code)
        body = self._parse_body(response)

        if not response.is_success:
            raise RequestError(
                f"{method} {path} returned {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                headers=response.headers,
                body=body,
            )
        return RestResponse(status_code=response.status_code, headers=response.headers, body=body)

    def _parse_body(self, response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.debug("Received non-JSON data from API: {}", response.text[:200])
            return response.text

    def clear_cookies(self) -> None:
        self._http.cookies.clear()

    @property
    def cookies(self) -> httpx.Cookies:
        return self._http.cookies

    async def aclose(self) -> None:
        await self._http.aclose()
