"""Resolves an address/channel pair to a writable backend endpoint."""

from __future__ import annotations

import logging
from typing import Any

from sppctl.core.discovery import DiscoveryService
from sppctl.core.errors import ConnectFailedError, TransportError
from sppctl.transports.base import Backend

LOGGER = logging.getLogger(__name__)


class EndpointResolver:
    def __init__(self, discovery: DiscoveryService) -> None:
        self.discovery = discovery

    @property
    def backend(self) -> Backend:
        return self.discovery.backend

    async def resolve(self, address: str, channel: str) -> Any:
        descriptor = await self.discovery.wait_for(address)
        LOGGER.debug("Connecting to %s on channel %s via %s", address, channel, self.backend.name)
        try:
            return await self.backend.connect(descriptor, channel)
        except TransportError:
            raise
        except Exception as exc:
            raise ConnectFailedError(f"Connect failed for {address} on channel {channel}: {exc}") from exc
