"""Open/write/close lifecycle for one logical connection."""

from __future__ import annotations

import logging
from typing import Any

from sppctl.core.errors import (
    ConnectionStateError,
    DisconnectFailedError,
    NotOpenError,
    SppctlError,
    TransportError,
    WriteFailedError,
)
from sppctl.core.model import ConnectionState
from sppctl.core.resolver import EndpointResolver

LOGGER = logging.getLogger(__name__)


class ConnectionHandle:
    """A device address plus channel, moving Closed -> Opening -> Open -> Closing -> Closed.

    The resolved endpoint is held only while the handle is Open. Callers must
    not overlap open/write/close on one handle.
    """

    def __init__(self, address: str, channel: str, resolver: EndpointResolver | None = None) -> None:
        self.address = address
        self.channel = str(channel)
        self.state = ConnectionState.CLOSED
        self._endpoint: Any = None
        self._resolver = resolver

    @property
    def resolver(self) -> EndpointResolver:
        if self._resolver is None:
            raise SppctlError(f"Connection to {self.address} is not bound to a resolver")
        return self._resolver

    @property
    def endpoint(self) -> Any:
        return self._endpoint

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    async def open(self) -> None:
        if self.state is not ConnectionState.CLOSED:
            raise ConnectionStateError(f"Cannot open {self.address}: connection is {self.state.value}")

        self.state = ConnectionState.OPENING
        try:
            endpoint = await self.resolver.resolve(self.address, self.channel)
        except BaseException:
            self.state = ConnectionState.CLOSED
            raise
        self._endpoint = endpoint
        self.state = ConnectionState.OPEN
        self.resolver.discovery.watch(self.address, self)
        LOGGER.debug("Opened %s on channel %s", self.address, self.channel)

    def mark_lost(self) -> None:
        if self.state is not ConnectionState.OPEN:
            return
        LOGGER.warning("Link to %s dropped; connection is now closed", self.address)
        self._endpoint = None
        self.state = ConnectionState.CLOSED

    async def write(self, data: bytes | bytearray | memoryview) -> None:
        if self.state is not ConnectionState.OPEN:
            raise NotOpenError("Please open() the device first before writing")

        # Rejects ints and other non-buffer values instead of zero-filling.
        payload = memoryview(data).tobytes()
        try:
            await self.resolver.backend.write(self._endpoint, payload)
        except TransportError:
            raise
        except Exception as exc:
            raise WriteFailedError(f"Write to {self.address} failed: {exc}") from exc

    async def close(self) -> None:
        if self.state is ConnectionState.CLOSED:
            return
        if self.state is not ConnectionState.OPEN:
            raise ConnectionStateError(f"Cannot close {self.address}: connection is {self.state.value}")

        endpoint = self._endpoint
        self.state = ConnectionState.CLOSING
        self.resolver.discovery.unwatch(self.address, self)
        try:
            await self.resolver.backend.disconnect(endpoint)
        except DisconnectFailedError:
            raise
        except Exception as exc:
            raise DisconnectFailedError(f"Disconnect from {self.address} failed: {exc}") from exc
        finally:
            self._endpoint = None
            self.state = ConnectionState.CLOSED
            LOGGER.debug("Closed %s", self.address)

    async def __aenter__(self) -> ConnectionHandle:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
