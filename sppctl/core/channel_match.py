"""Channel-to-characteristic matching for GATT service trees."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from bleak.uuids import normalize_uuid_str

from sppctl.core.errors import SppctlError

WRITE_PROPERTIES = ("write", "write-without-response")
MATCH_RULES = ("service", "characteristic")


def normalize_channel(channel: str) -> str | None:
    """Expand a 16/32/128-bit UUID string to lower-case 128-bit form."""
    try:
        return normalize_uuid_str(channel.strip().lower())
    except ValueError:
        return None


def is_writable(characteristic: Any) -> bool:
    return any(prop in characteristic.properties for prop in WRITE_PROPERTIES)


def _uuid_equals(value: str, wanted: str) -> bool:
    return normalize_channel(value) == wanted


def match_by_service(services: Iterable[Any], channel: str) -> Any | None:
    wanted = normalize_channel(channel)
    if wanted is None:
        return None
    for service in services:
        if not _uuid_equals(service.uuid, wanted):
            continue
        for characteristic in service.characteristics:
            if is_writable(characteristic):
                return characteristic
    return None


def match_by_characteristic(services: Iterable[Any], channel: str) -> Any | None:
    wanted = normalize_channel(channel)
    if wanted is None:
        return None
    for service in services:
        for characteristic in service.characteristics:
            if _uuid_equals(characteristic.uuid, wanted) and is_writable(characteristic):
                return characteristic
    return None


def find_write_characteristic(services: Iterable[Any], channel: str, *, rule: str) -> Any | None:
    if rule == "service":
        return match_by_service(services, channel)
    if rule == "characteristic":
        return match_by_characteristic(services, channel)
    raise SppctlError(f"Unknown BLE match rule '{rule}'. Expected one of: {', '.join(MATCH_RULES)}")
