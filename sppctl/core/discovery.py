"""Discovery cache and the scan-backed discovery service."""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Awaitable, Callable
from typing import Protocol

from sppctl.core.errors import DeviceNotFoundError
from sppctl.core.model import PeripheralDescriptor, Settings
from sppctl.core.scan import CallLater, ScanWindow
from sppctl.transports.base import Backend

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class LinkWatcher(Protocol):
    def mark_lost(self) -> None:
        """Drop a resolved endpoint whose link went away."""


def _key(address: str) -> str:
    return address.strip().upper()


class DiscoveryCache:
    """Most recent observation per address. No history, no expiry."""

    def __init__(self) -> None:
        self._entries: dict[str, PeripheralDescriptor] = {}

    def on_observed(self, descriptor: PeripheralDescriptor) -> None:
        self._entries[_key(descriptor.address)] = descriptor

    def forget(self, address: str) -> None:
        self._entries.pop(_key(address), None)

    def has(self, address: str) -> bool:
        return _key(address) in self._entries

    def get(self, address: str) -> PeripheralDescriptor | None:
        return self._entries.get(_key(address))

    def list_all(self) -> list[PeripheralDescriptor]:
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)


class DiscoveryService:
    def __init__(
        self,
        backend: Backend,
        *,
        settings: Settings | None = None,
        sleep: Sleep | None = None,
        call_later: CallLater | None = None,
    ) -> None:
        self.backend = backend
        self.settings = settings or Settings()
        self.cache = DiscoveryCache()
        self.scan_window = ScanWindow(
            backend,
            window_s=self.settings.scan_window_s,
            call_later=call_later,
        )
        self._sleep = sleep or asyncio.sleep
        self._watchers: dict[str, weakref.WeakSet[LinkWatcher]] = {}
        backend.bind(self.cache.on_observed, self._on_lost)

    def start_scan(self) -> None:
        self.scan_window.start()

    async def find_devices(self) -> list[PeripheralDescriptor]:
        """Scan for one full window, then snapshot the cache.

        Advertisements have no completion signal, so this never returns early.
        """
        self.start_scan()
        await self._sleep(self.settings.scan_window_s)
        return self.cache.list_all()

    async def wait_for(self, address: str) -> PeripheralDescriptor:
        descriptor = self.cache.get(address)
        if descriptor is not None:
            return descriptor

        self.start_scan()
        for attempt in range(self.settings.poll_attempts):
            await self._sleep(self.settings.poll_interval_s)
            descriptor = self.cache.get(address)
            if descriptor is not None:
                LOGGER.debug("Found %s after %d poll(s)", address, attempt + 1)
                return descriptor

        raise DeviceNotFoundError(
            f"Device {address} cannot be found within the {self.settings.scan_window_s:g}s scan window"
        )

    def watch(self, address: str, watcher: LinkWatcher) -> None:
        self._watchers.setdefault(_key(address), weakref.WeakSet()).add(watcher)

    def unwatch(self, address: str, watcher: LinkWatcher) -> None:
        watchers = self._watchers.get(_key(address))
        if watchers is not None:
            watchers.discard(watcher)

    def _on_lost(self, address: str) -> None:
        LOGGER.warning("Lost connection to %s; dropping it from the discovery cache", address)
        self.cache.forget(address)
        for watcher in list(self._watchers.pop(_key(address), ())):
            watcher.mark_lost()
