"""Domain-specific errors for bluecontrol."""


class BluecontrolError(Exception):
    """Base error for bluecontrol."""


class DialectValidationError(BluecontrolError):
    """Raised when a dialect file does not conform to schema or semantics."""


class DialectLoadError(BluecontrolError):
    """Raised when loading dialect sources fails."""


class ConfigError(BluecontrolError):
    """Raised when the session configuration file is invalid."""


class DeviceSelectionError(BluecontrolError):
    """Raised when a device hint cannot be resolved to a single peripheral."""


class PermissionDeniedError(BluecontrolError):
    """Raised when the permission authority refuses a scan or connect."""


class StateFileError(BluecontrolError):
    """Raised when the persisted state file cannot be read."""


class SessionTimeoutError(BluecontrolError):
    """Raised when the session does not reach an expected state in time."""


class LinkError(BluecontrolError):
    """Base link-layer error."""


class LinkFailureError(LinkError):
    """Raised when a connection attempt is rejected by the peripheral or stack."""


class LinkLostError(LinkError):
    """Raised when an established link drops without a manual disconnect."""


class DescriptorMissingError(LinkError):
    """Raised when a read characteristic lacks its notification descriptor."""


class ProtocolError(BluecontrolError):
    """Base command protocol error."""


class ProtocolValidationError(ProtocolError):
    """Raised when an outgoing command fails numeric or parameter validation."""


class WriteCharacteristicMissingError(ProtocolError):
    """Raised when a write is attempted before the write characteristic is bound."""


class WriteFailedError(ProtocolError):
    """Raised when the backend reports a failed characteristic write."""
