"""Shared HTTP plumbing for service clients.

Each client owns one aiohttp session for the lifetime of an invocation and
maps transport failures and authentication replies onto Omni's error
taxonomy. Nothing here retries.
"""

import asyncio
import json
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Dict, Optional

import aiohttp

from omni.errors import (
    InvalidCredentialsError,
    OmniError,
    ServiceUnreachableError,
    UnexpectedResponseError,
)
from omni.observability import get_logger

logger = get_logger(__name__)


@dataclass
class HttpReply:
    """Status and body of a completed HTTP exchange."""
    status: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        return json.loads(self.text) if self.text else {}


class ServiceClient:
    """Base class for the Bitwarden and Epicor clients.

    Usage:
        async with BitwardenClient(settings) as client:
            session = await client.authenticate(...)
    """

    service_name = "service"

    def __init__(self, timeout_seconds: float = 30.0):
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        """Open the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)

    async def disconnect(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.disconnect()

    async def _send(
        self,
        method: str,
        url: str,
        transport_error: Callable[[str], OmniError],
        **kwargs,
    ) -> HttpReply:
        """Send one request and read the whole body.

        Args:
            method: HTTP method
            url: Absolute URL
            transport_error: Builds the error raised on network failure
            **kwargs: Passed to ``aiohttp.ClientSession.request``

        Raises:
            Whatever ``transport_error`` builds, on connection errors and timeouts
        """
        if self._session is None:
            raise RuntimeError("Not connected. Use 'async with' or call connect() first.")

        logger.debug(f"{method} {url}")
        try:
            async with self._session.request(method, url, **kwargs) as response:
                text = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            reason = str(e) or type(e).__name__
            logger.warning(f"{method} {url} failed: {reason}")
            raise transport_error(reason) from e

        logger.debug(f"{method} {url} -> {response.status}")
        return HttpReply(response.status, text)

    async def _send_auth(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Send an authentication request and return its JSON body.

        Raises:
            InvalidCredentialsError: The service answered 4xx
            ServiceUnreachableError: Connection error or timeout
            UnexpectedResponseError: Any other status, or a body that is not a JSON object
        """
        reply = await self._send(
            method,
            url,
            lambda reason: ServiceUnreachableError(self.service_name, reason),
            **kwargs,
        )
        if 400 <= reply.status < 500:
            raise InvalidCredentialsError(self.service_name, reply.status, reply.text)
        if not reply.ok:
            raise UnexpectedResponseError(self.service_name, reply.status, reply.text)
        try:
            data = reply.json()
        except ValueError:
            raise UnexpectedResponseError(self.service_name, reply.status, reply.text)
        if not isinstance(data, dict):
            raise UnexpectedResponseError(self.service_name, reply.status, reply.text)
        return data

    def _token_ttl(self, expires_in: Any, default_seconds: int) -> timedelta:
        """Lifetime of a freshly issued token; a missing value means ``default_seconds``.

        Raises:
            UnexpectedResponseError: The value is not a whole number of seconds
        """
        try:
            return timedelta(seconds=int(expires_in or default_seconds))
        except (TypeError, ValueError):
            raise UnexpectedResponseError(self.service_name, 200, "token response has an invalid lifetime")
