"""Transport interfaces."""

from __future__ import annotations

from typing import Protocol

from ledctl.core.model import Endpoint


class DeviceTransport(Protocol):
    async def request(self, endpoint: Endpoint) -> str:
        """Issue one call against the device and return the response body.

        Raises a `TransportError` subclass on any failure.
        """

    async def close(self) -> None:
        """Release any connection resources."""
