"""Backend interfaces."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from sppctl.core.model import PeripheralDescriptor

ObservedHandler = Callable[[PeripheralDescriptor], None]
LostHandler = Callable[[str], None]


class Backend(Protocol):
    """Contract shared by the BLE and classic RFCOMM backends.

    Observations are pushed through the handlers given to ``bind``; the
    discovery service owns the cache they feed.
    """

    name: str

    def bind(self, on_observed: ObservedHandler, on_lost: LostHandler) -> None:
        """Register discovery-event handlers."""

    async def start_scan(self) -> None:
        """Begin listening for devices."""

    async def stop_scan(self) -> None:
        """Stop listening for devices."""

    async def connect(self, descriptor: PeripheralDescriptor, channel: str) -> Any:
        """Return a writable endpoint for ``channel`` on ``descriptor``."""

    async def write(self, endpoint: Any, data: bytes) -> None:
        """Write raw bytes to a resolved endpoint."""

    async def disconnect(self, endpoint: Any) -> None:
        """Release a resolved endpoint."""
