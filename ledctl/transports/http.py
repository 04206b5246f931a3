"""HTTP transport implementation using aiohttp."""

from __future__ import annotations

import asyncio
import logging

import aiohttp

from ledctl.core.errors import (
    TransportConnectError,
    TransportError,
    TransportResponseError,
    TransportTimeoutError,
)
from ledctl.core.model import Endpoint

LOGGER = logging.getLogger(__name__)


class HTTPTransport:
    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 5.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        if "://" not in base_url:
            base_url = f"http://{base_url}"
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._session = session
        self._owns_session = session is None

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_s),
            )
            self._owns_session = True
        return self._session

    async def request(self, endpoint: Endpoint) -> str:
        url = f"{self.base_url}{endpoint.path}"
        LOGGER.debug("GET %s%s", self.base_url, endpoint)
        try:
            async with self._client().get(url, params=endpoint.params) as response:
                body = await response.text()
                if response.status < 200 or response.status >= 300:
                    raise TransportResponseError(
                        f"{endpoint} returned HTTP {response.status}",
                        status=response.status,
                    )
                return body
        except TransportError:
            raise
        except asyncio.TimeoutError as exc:
            raise TransportTimeoutError(
                f"{endpoint} timed out after {self.timeout_s}s"
            ) from exc
        except aiohttp.ClientConnectionError as exc:
            raise TransportConnectError(
                f"Could not reach {self.base_url}: {exc}"
            ) from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"{endpoint} failed: {exc}") from exc

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
