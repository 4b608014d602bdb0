"""Stable public API for building tooling on top of sppctl.

This module is the supported integration surface for third-party callers.
Everything here is asynchronous and must run inside an asyncio event loop.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from typing import Any

from sppctl.core.config import load_settings
from sppctl.core.connection import ConnectionHandle
from sppctl.core.discovery import DiscoveryService, Sleep
from sppctl.core.errors import (
    ChannelNotFoundError,
    ConfigError,
    ConnectFailedError,
    ConnectionStateError,
    DeviceDiscoveryError,
    DeviceNotFoundError,
    DisconnectFailedError,
    NotOpenError,
    SppctlError,
    TransportError,
    WriteFailedError,
)
from sppctl.core.model import ChannelInfo, ConnectionState, PeripheralDescriptor, Settings
from sppctl.core.platform import runtime_warnings, select_backend
from sppctl.core.resolver import EndpointResolver
from sppctl.core.scan import CallLater
from sppctl.transports.base import Backend

__all__ = [
    "SppctlError",
    "ConfigError",
    "DeviceDiscoveryError",
    "TransportError",
    "DeviceNotFoundError",
    "ChannelNotFoundError",
    "ConnectFailedError",
    "NotOpenError",
    "ConnectionStateError",
    "WriteFailedError",
    "DisconnectFailedError",
    "ChannelInfo",
    "ConnectionState",
    "PeripheralDescriptor",
    "Settings",
    "Backend",
    "Client",
    "Device",
    "default_client",
    "set_default_client",
    "list_devices",
    "open",
    "write",
    "close",
]


class Client:
    """Public client owning one discovery cache, scan window and backend.

    Create one per process (or use `default_client()`); every `Device` bound
    to the same client shares its discovery cache.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        backend: Backend | None = None,
        sleep: Sleep | None = None,
        call_later: CallLater | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.backend = backend or select_backend(self.settings)
        self.discovery = DiscoveryService(
            self.backend,
            settings=self.settings,
            sleep=sleep,
            call_later=call_later,
        )
        self.resolver = EndpointResolver(self.discovery)

    @property
    def runtime_warnings(self) -> tuple[str, ...]:
        return runtime_warnings(self.backend)

    async def list_devices(self) -> list[dict[str, Any]]:
        descriptors = await self.discovery.find_devices()
        return [descriptor.as_listing() for descriptor in descriptors]

    def device(self, address: str, channel: str) -> Device:
        return Device(address, channel, client=self)


class Device(ConnectionHandle):
    """Handle for one address/channel pair. Constructing it performs no I/O."""

    def __init__(self, address: str, channel: str, *, client: Client | None = None) -> None:
        super().__init__(address, channel)
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = default_client()
        return self._client

    @property
    def resolver(self) -> EndpointResolver:
        return self.client.resolver


_default_client: Client | None = None


def default_client() -> Client:
    global _default_client
    if _default_client is None:
        _default_client = Client()
    return _default_client


def set_default_client(client: Client | None) -> None:
    global _default_client
    _default_client = client


async def list_devices() -> list[dict[str, Any]]:
    return await default_client().list_devices()


async def open(device: Device) -> None:
    await device.open()


async def write(device: Device, data: bytes) -> None:
    await device.write(data)


async def close(device: Device) -> None:
    await device.close()
