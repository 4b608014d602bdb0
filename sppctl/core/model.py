"""Core data models used across discovery, resolution, and the CLI."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ChannelInfo:
    channel: str
    name: str


@dataclass(frozen=True)
class PeripheralDescriptor:
    """Snapshot of one scan observation of a device."""

    address: str
    name: str = ""
    channels: tuple[ChannelInfo, ...] = ()
    # Backend object needed to connect (e.g. a bleak BLEDevice).
    handle: Any = field(default=None, compare=False, repr=False)

    def as_listing(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "name": self.name,
            "services": [{"channel": c.channel, "name": c.name} for c in self.channels],
        }


class ConnectionState(enum.Enum):
    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"
    CLOSING = "closing"


@dataclass(frozen=True)
class Settings:
    backend: str = "auto"
    scan_window_s: float = 10.0
    poll_interval_s: float = 1.0
    ble_match_rule: str = "service"
    ble_write_with_response: bool = True
    ble_connect_timeout_s: float = 10.0
    rfcomm_channels: tuple[ChannelInfo, ...] = (ChannelInfo(channel="1", name="SPP"),)
    rfcomm_timeout_s: float = 5.0

    @property
    def poll_attempts(self) -> int:
        attempts = int(round(self.scan_window_s / self.poll_interval_s))
        return max(attempts, 1)
