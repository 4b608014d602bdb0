"""BLE GATT backend implementation using bleak."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from bleak import BleakClient, BleakScanner
from bleak.uuids import uuidstr_to_str

from sppctl.core.channel_match import MATCH_RULES, find_write_characteristic
from sppctl.core.errors import (
    ChannelNotFoundError,
    ConfigError,
    ConnectFailedError,
    DisconnectFailedError,
    WriteFailedError,
)
from sppctl.core.model import ChannelInfo, PeripheralDescriptor
from sppctl.transports.base import LostHandler, ObservedHandler

LOGGER = logging.getLogger(__name__)

_GENERIC_UUID_NAMES = {"Unknown", "Vendor specific"}
_CONNECTABLE_KEY = "kCBAdvDataIsConnectable"


@dataclass
class BLEEndpoint:
    address: str
    client: Any
    characteristic: Any


def _is_connectable(advertisement: Any) -> bool:
    # Only CoreBluetooth reports connectability; other platforms pass through.
    for item in getattr(advertisement, "platform_data", None) or ():
        getter = getattr(item, "get", None)
        if getter is None:
            continue
        flag = getter(_CONNECTABLE_KEY)
        if flag is not None:
            return bool(flag)
    return True


def _channel_label(uuid: str) -> str:
    label = uuidstr_to_str(uuid)
    if not label or label in _GENERIC_UUID_NAMES:
        return "SPP"
    return label


def descriptor_from_advertisement(device: Any, advertisement: Any) -> PeripheralDescriptor:
    name = advertisement.local_name or device.name or ""
    channels = tuple(
        ChannelInfo(channel=uuid, name=_channel_label(uuid))
        for uuid in advertisement.service_uuids or ()
    )
    return PeripheralDescriptor(address=device.address, name=name, channels=channels, handle=device)


class BLEGATTBackend:
    name = "ble"

    def __init__(
        self,
        *,
        match_rule: str = "service",
        write_with_response: bool = True,
        connect_timeout_s: float = 10.0,
    ) -> None:
        if match_rule not in MATCH_RULES:
            raise ConfigError(
                f"Unknown BLE match rule '{match_rule}'. Expected one of: {', '.join(MATCH_RULES)}"
            )
        self.match_rule = match_rule
        self.write_with_response = write_with_response
        self.connect_timeout_s = connect_timeout_s
        self._scanner: Any = None
        self._on_observed: ObservedHandler | None = None
        self._on_lost: LostHandler | None = None
        self._closing: set[str] = set()

    def bind(self, on_observed: ObservedHandler, on_lost: LostHandler) -> None:
        self._on_observed = on_observed
        self._on_lost = on_lost

    def _on_detection(self, device: Any, advertisement: Any) -> None:
        if not _is_connectable(advertisement):
            LOGGER.debug("Ignoring non-connectable advertisement from %s", device.address)
            return
        if self._on_observed is not None:
            self._on_observed(descriptor_from_advertisement(device, advertisement))

    def _on_disconnected(self, client: Any) -> None:
        address = client.address
        if address in self._closing:
            self._closing.discard(address)
            return
        if self._on_lost is not None:
            self._on_lost(address)

    async def start_scan(self) -> None:
        if self._scanner is None:
            self._scanner = BleakScanner(detection_callback=self._on_detection)
        await self._scanner.start()

    async def stop_scan(self) -> None:
        if self._scanner is None:
            return
        await self._scanner.stop()

    async def connect(self, descriptor: PeripheralDescriptor, channel: str) -> BLEEndpoint:
        address = descriptor.address
        self._closing.discard(address)
        client = BleakClient(
            descriptor.handle or address,
            disconnected_callback=self._on_disconnected,
            timeout=self.connect_timeout_s,
        )
        try:
            await client.connect()
        except Exception as exc:
            raise ConnectFailedError(f"BLE connect failed for {address}: {exc}") from exc

        characteristic = find_write_characteristic(client.services, channel, rule=self.match_rule)
        if characteristic is None:
            self._closing.add(address)
            try:
                await client.disconnect()
            except Exception as exc:
                LOGGER.warning("BLE disconnect after channel miss failed for %s: %s", address, exc)
            raise ChannelNotFoundError(
                f"Channel {channel} cannot be found on {address} (match rule: {self.match_rule})"
            )

        LOGGER.debug("Resolved %s channel %s to characteristic %s", address, channel, characteristic.uuid)
        return BLEEndpoint(address=address, client=client, characteristic=characteristic)

    async def write(self, endpoint: BLEEndpoint, data: bytes) -> None:
        try:
            await endpoint.client.write_gatt_char(
                endpoint.characteristic,
                data,
                response=self.write_with_response,
            )
        except Exception as exc:
            raise WriteFailedError(f"BLE GATT write failed: {exc}") from exc

    async def disconnect(self, endpoint: BLEEndpoint) -> None:
        self._closing.add(endpoint.address)
        try:
            await endpoint.client.disconnect()
        except Exception as exc:
            raise DisconnectFailedError(f"BLE disconnect failed for {endpoint.address}: {exc}") from exc
