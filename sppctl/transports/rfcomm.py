"""Classic Bluetooth RFCOMM backend using Python sockets."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import re
import socket
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from sppctl.core.errors import (
    ChannelNotFoundError,
    ConnectFailedError,
    DeviceDiscoveryError,
    DisconnectFailedError,
    WriteFailedError,
)
from sppctl.core.model import ChannelInfo, PeripheralDescriptor
from sppctl.transports.base import LostHandler, ObservedHandler

LOGGER = logging.getLogger(__name__)

_DEVICE_LINE_RE = re.compile(r"^Device\s+([0-9A-F:]{17})\s*(.*)$", re.IGNORECASE)
_PAIRED_COMMANDS = (
    ["bluetoothctl", "devices", "Paired"],
    ["bluetoothctl", "paired-devices"],
)


@dataclass
class RFCOMMEndpoint:
    address: str
    channel: int
    sock: socket.socket


def list_paired_devices() -> list[PeripheralDescriptor]:
    seen: set[str] = set()
    devices: list[PeripheralDescriptor] = []
    command_errors: list[str] = []

    for cmd in _PAIRED_COMMANDS:
        result = _run_discovery_command(cmd)
        if result is None:
            continue
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            if stderr:
                command_errors.append(f"{' '.join(cmd)} -> {stderr}")
            continue

        for line in result.stdout.splitlines():
            match = _DEVICE_LINE_RE.match(line.strip())
            if not match:
                continue
            mac, name = match.group(1).upper(), match.group(2).strip()
            if mac in seen:
                continue
            seen.add(mac)
            devices.append(PeripheralDescriptor(address=mac, name=name))

        if devices:
            return devices

    if command_errors:
        joined = " | ".join(command_errors)
        raise DeviceDiscoveryError(
            f"Paired device lookup failed. Ensure a working D-Bus/BlueZ session. Details: {joined}"
        )

    return devices


def _run_discovery_command(cmd: Sequence[str]) -> subprocess.CompletedProcess[str] | None:
    try:
        return subprocess.run(
            cmd,
            check=False,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        return None


def _open_socket(address: str, channel: int, timeout_s: float) -> socket.socket:
    try:
        af_bluetooth = socket.AF_BLUETOOTH
        btproto_rfcomm = socket.BTPROTO_RFCOMM
    except AttributeError as exc:
        raise ConnectFailedError(
            "This Python build does not expose Bluetooth socket APIs (AF_BLUETOOTH/BTPROTO_RFCOMM)."
        ) from exc

    try:
        bt_socket = socket.socket(af_bluetooth, socket.SOCK_STREAM, btproto_rfcomm)
    except OSError as exc:
        raise ConnectFailedError(f"Could not create RFCOMM socket: {exc}") from exc
    bt_socket.settimeout(timeout_s)
    try:
        bt_socket.connect((address, channel))
    except OSError as exc:
        bt_socket.close()
        raise ConnectFailedError(
            f"RFCOMM connect failed for {address} on channel {channel}: {exc}"
        ) from exc
    return bt_socket


class RFCOMMBackend:
    """Paired-device enumeration stands in for scanning; there is no advertisement stream."""

    name = "rfcomm"

    def __init__(
        self,
        *,
        channels: Sequence[ChannelInfo] = (ChannelInfo(channel="1", name="SPP"),),
        timeout_s: float = 5.0,
        list_paired: Callable[[], list[PeripheralDescriptor]] | None = None,
    ) -> None:
        self.channels = tuple(channels)
        self.timeout_s = timeout_s
        self._list_paired = list_paired or list_paired_devices
        self._on_observed: ObservedHandler | None = None

    def bind(self, on_observed: ObservedHandler, on_lost: LostHandler) -> None:
        self._on_observed = on_observed

    async def start_scan(self) -> None:
        devices = await asyncio.to_thread(self._list_paired)
        if self._on_observed is None:
            return
        for device in devices:
            self._on_observed(dataclasses.replace(device, channels=self.channels))

    async def stop_scan(self) -> None:
        return None

    async def connect(self, descriptor: PeripheralDescriptor, channel: str) -> RFCOMMEndpoint:
        try:
            channel_number = int(channel)
        except ValueError:
            raise ChannelNotFoundError(
                f"RFCOMM channel must be a number, got '{channel}'"
            ) from None

        sock = await asyncio.to_thread(_open_socket, descriptor.address, channel_number, self.timeout_s)
        return RFCOMMEndpoint(address=descriptor.address, channel=channel_number, sock=sock)

    async def write(self, endpoint: RFCOMMEndpoint, data: bytes) -> None:
        try:
            await asyncio.to_thread(endpoint.sock.sendall, data)
        except OSError as exc:
            raise WriteFailedError(f"RFCOMM send failed: {exc}") from exc

    async def disconnect(self, endpoint: RFCOMMEndpoint) -> None:
        try:
            await asyncio.to_thread(endpoint.sock.close)
        except OSError as exc:
            raise DisconnectFailedError(f"RFCOMM close failed for {endpoint.address}: {exc}") from exc
