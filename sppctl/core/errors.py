"""Domain-specific errors for sppctl."""


class SppctlError(Exception):
    """Base error for sppctl."""


class ConfigError(SppctlError):
    """Raised when a config file cannot be read or does not conform to schema."""


class DeviceDiscoveryError(SppctlError):
    """Raised when paired-device enumeration command(s) fail."""


class TransportError(SppctlError):
    """Base transport error."""


class DeviceNotFoundError(TransportError):
    """Raised when an address is not observed within the scan window."""


class ChannelNotFoundError(TransportError):
    """Raised when a device has no writable endpoint for the requested channel."""


class ConnectFailedError(TransportError):
    """Raised on BLE connect or RFCOMM bind failures."""


class NotOpenError(TransportError):
    """Raised when writing to a device that has not been opened."""


class ConnectionStateError(TransportError):
    """Raised when open() is called on a device that is not closed."""


class WriteFailedError(TransportError):
    """Raised when the backend rejects a write."""


class DisconnectFailedError(TransportError):
    """Raised when the backend fails to disconnect during close()."""
