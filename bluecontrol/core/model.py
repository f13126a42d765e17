"""Core data models used across loader, session, service, and CLI."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from bluecontrol.core.errors import BluecontrolError

ALL_PARAMETERS = "all"


class ParameterName(str, Enum):
    CURRENT = "current"
    VOLTAGE = "voltage"
    FREQUENCY = "frequency"
    L_FREQ = "l_freq"
    R_FREQ = "r_freq"
    VOLUME = "volume"


class SessionState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    CONNECTING = "connecting"
    SERVICE_DISCOVERY = "service_discovery"
    READY = "ready"
    DISCONNECTED = "disconnected"


class RoleKind(str, Enum):
    READ = "read"
    WRITE = "write"
    UNKNOWN = "unknown"


class ValueStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class PeripheralHandle:
    address: str
    name: str | None = None

    @property
    def label(self) -> str:
        return f"{self.address} ({self.name or '<unknown-device>'})"


@dataclass(frozen=True)
class CharacteristicRole:
    kind: RoleKind
    parameter: ParameterName | None = None


@dataclass(frozen=True)
class CharacteristicInfo:
    """A characteristic as reported by service discovery."""

    uuid: str
    descriptors: tuple[str, ...] = ()
    properties: tuple[str, ...] = ()


@dataclass(frozen=True)
class Dialect:
    id: str
    name: str
    token_case: str
    parameter_token: bool
    numeric: str
    strict_raw_writes: bool
    value_prefix: str | None
    auto_get_delay_s: float | None
    write_char_uuid: str
    descriptor_uuid: str
    read_characteristics: dict[ParameterName, str]

    @property
    def parameters(self) -> tuple[ParameterName, ...]:
        return tuple(self.read_characteristics.keys())


@dataclass(frozen=True)
class ParameterValue:
    value: str
    status: ValueStatus


@dataclass(frozen=True)
class SessionConfig:
    dialect: str = "multi_channel"
    settle_delay_s: float = 0.6
    reconnect_delay_s: float = 1.0
    reconnect_max_attempts: int | None = None
    reconnect_backoff: float = 1.0
    connect_timeout_s: float = 10.0
    scan_duration_s: float = 5.0
    response_wait_s: float = 1.0
    write_with_response: bool = True
    log_level: str = "WARNING"


@dataclass(frozen=True)
class SessionSnapshot:
    state: SessionState = SessionState.IDLE
    scanning: bool = False
    connected_device: PeripheralHandle | None = None
    manual_disconnect: bool = False
    devices: tuple[PeripheralHandle, ...] = ()
    values: Mapping[ParameterName, ParameterValue] = field(default_factory=lambda: MappingProxyType({}))
    last_message: str = ""
    write_bound: bool = False
    subscribed: tuple[ParameterName, ...] = ()
    reconnect_attempts: int = 0
    last_error: BluecontrolError | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.values, MappingProxyType):
            object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    @property
    def connected(self) -> bool:
        return self.state is SessionState.READY

    def value_of(self, parameter: ParameterName) -> str | None:
        slot = self.values.get(parameter)
        return slot.value if slot else None


@dataclass(frozen=True)
class CommandResult:
    command: str
    payload: str | None = None
    error: BluecontrolError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ReadResult:
    device: PeripheralHandle
    dialect: str
    values: dict[ParameterName, str | None]
    last_message: str


@dataclass(frozen=True)
class SendResult:
    device: PeripheralHandle
    dialect: str
    command: str
    payload: str | None
    confirmed: bool = False
