"""Stable public API for building tooling on top of bluecontrol.

This module is the supported integration surface for third-party callers.
Synchronous helpers live on `Client`; long-running or event-driven callers
should open a `DeviceSession` through `Client.open_session` and drive it from
their own event loop.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path

from bluecontrol.core.address_store import YamlAddressStore
from bluecontrol.core.errors import (
    BluecontrolError,
    ConfigError,
    DescriptorMissingError,
    DeviceSelectionError,
    DialectLoadError,
    DialectValidationError,
    LinkError,
    LinkFailureError,
    LinkLostError,
    PermissionDeniedError,
    ProtocolError,
    ProtocolValidationError,
    SessionTimeoutError,
    StateFileError,
    WriteCharacteristicMissingError,
    WriteFailedError,
)
from bluecontrol.core.model import (
    ALL_PARAMETERS,
    CommandResult,
    Dialect,
    ParameterName,
    ParameterValue,
    PeripheralHandle,
    ReadResult,
    SendResult,
    SessionConfig,
    SessionSnapshot,
    SessionState,
    ValueStatus,
)
from bluecontrol.core.service import ControlService
from bluecontrol.core.session import DeviceSession, MessageSink, PermissionCheck
from bluecontrol.transports.base import BLEBackend, Link
from bluecontrol.transports.ble_gatt import BleakBackend

__all__ = [
    "BluecontrolError",
    "ConfigError",
    "DescriptorMissingError",
    "DeviceSelectionError",
    "DialectLoadError",
    "DialectValidationError",
    "LinkError",
    "LinkFailureError",
    "LinkLostError",
    "PermissionDeniedError",
    "ProtocolError",
    "ProtocolValidationError",
    "SessionTimeoutError",
    "StateFileError",
    "WriteCharacteristicMissingError",
    "WriteFailedError",
    "ALL_PARAMETERS",
    "CommandResult",
    "Dialect",
    "ParameterName",
    "ParameterValue",
    "PeripheralHandle",
    "ReadResult",
    "SendResult",
    "SessionConfig",
    "SessionSnapshot",
    "SessionState",
    "ValueStatus",
    "BLEBackend",
    "Link",
    "BleakBackend",
    "DeviceSession",
    "YamlAddressStore",
    "Client",
]


class Client:
    """Public client for interacting with a bluecontrol peripheral.

    A `Client` instance wraps dialect loading, configuration, device
    resolution and one-shot GET/SET exchanges behind a stable API intended
    for third-party tools (GUI/TUI/services/scripts).
    """

    def __init__(
        self,
        *,
        backend: BLEBackend | None = None,
        config: SessionConfig | None = None,
        config_path: Path | None = None,
        address_store: YamlAddressStore | None = None,
        permission: PermissionCheck | None = None,
    ) -> None:
        self._service = ControlService(
            backend=backend,
            config=config,
            config_path=config_path,
            address_store=address_store,
            permission=permission,
        )

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def config(self) -> SessionConfig:
        return self._service.config

    def list_dialects(self) -> list[Dialect]:
        return self._service.list_dialects()

    def list_devices(self, *, duration_s: float | None = None) -> list[PeripheralHandle]:
        return self._service.scan(duration_s)

    def resolve_device(self, device_hint: str | None = None) -> PeripheralHandle:
        return self._service.resolve_device(device_hint)

    def open_session(
        self,
        *,
        dialect_id: str | None = None,
        message_sink: MessageSink | None = None,
    ) -> DeviceSession:
        return self._service.new_session(dialect_id, message_sink=message_sink)

    def get_values(
        self,
        parameters: Sequence[str] = (),
        *,
        device_hint: str | None = None,
        dialect_id: str | None = None,
    ) -> ReadResult:
        return self._service.get_values(parameters, device_hint=device_hint, dialect_id=dialect_id)

    def set_value(
        self,
        parameter: str,
        value: str,
        *,
        device_hint: str | None = None,
        dialect_id: str | None = None,
    ) -> SendResult:
        return self._service.set_value(parameter, value, device_hint=device_hint, dialect_id=dialect_id)

    def send_raw(
        self,
        message: str,
        *,
        device_hint: str | None = None,
        dialect_id: str | None = None,
    ) -> SendResult:
        return self._service.send_raw(message, device_hint=device_hint, dialect_id=dialect_id)

    def monitor(
        self,
        on_message: Callable[[str], None],
        *,
        device_hint: str | None = None,
        dialect_id: str | None = None,
        duration_s: float | None = None,
        on_state: Callable[[SessionSnapshot], None] | None = None,
    ) -> SessionSnapshot:
        return self._service.monitor(
            on_message,
            device_hint=device_hint,
            dialect_id=dialect_id,
            duration_s=duration_s,
            on_state=on_state,
        )
