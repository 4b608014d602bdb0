"""Backend selection; the only place that branches on host platform."""

from __future__ import annotations

import socket
import sys

from sppctl.core.errors import ConfigError
from sppctl.core.model import Settings
from sppctl.transports.base import Backend
from sppctl.transports.ble_gatt import BLEGATTBackend
from sppctl.transports.rfcomm import RFCOMMBackend


def backend_name(settings: Settings, platform: str | None = None) -> str:
    if settings.backend != "auto":
        return settings.backend
    host = platform or sys.platform
    return "ble" if host.lower() == "darwin" else "rfcomm"


def select_backend(settings: Settings, platform: str | None = None) -> Backend:
    choice = backend_name(settings, platform)
    if choice == "ble":
        return BLEGATTBackend(
            match_rule=settings.ble_match_rule,
            write_with_response=settings.ble_write_with_response,
            connect_timeout_s=settings.ble_connect_timeout_s,
        )
    if choice == "rfcomm":
        return RFCOMMBackend(
            channels=settings.rfcomm_channels,
            timeout_s=settings.rfcomm_timeout_s,
        )
    raise ConfigError(f"Unsupported backend '{choice}'. Expected one of: auto, ble, rfcomm")


def runtime_warnings(backend: Backend) -> tuple[str, ...]:
    warnings: list[str] = []
    if backend.name == "rfcomm" and (
        not hasattr(socket, "AF_BLUETOOTH") or not hasattr(socket, "BTPROTO_RFCOMM")
    ):
        warnings.append(
            "Python runtime missing AF_BLUETOOTH/BTPROTO_RFCOMM; RFCOMM connections will fail."
        )
    return tuple(warnings)
