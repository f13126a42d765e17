"""Service layer used by CLI and future UI frontends."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from bluecontrol.core.address_store import YamlAddressStore
from bluecontrol.core.config import load_config
from bluecontrol.core.device_match import best_devices_for_hint, is_full_address
from bluecontrol.core.dialect_loader import load_dialects
from bluecontrol.core.errors import (
    DeviceSelectionError,
    DialectLoadError,
    LinkFailureError,
    SessionTimeoutError,
    WriteCharacteristicMissingError,
    WriteFailedError,
)
from bluecontrol.core.model import (
    CommandResult,
    Dialect,
    ParameterName,
    PeripheralHandle,
    ReadResult,
    SendResult,
    SessionConfig,
    SessionSnapshot,
    SessionState,
    ValueStatus,
)
from bluecontrol.core.protocol import resolve_parameter
from bluecontrol.core.session import ADDRESS_KEY, DeviceSession, MessageSink, PermissionCheck
from bluecontrol.transports.base import BLEBackend
from bluecontrol.transports.ble_gatt import BleakBackend

LOGGER = logging.getLogger(__name__)


def _raise_for(result: CommandResult) -> CommandResult:
    if result.error is not None:
        raise result.error
    return result


class ControlService:
    def __init__(
        self,
        *,
        backend: BLEBackend | None = None,
        config: SessionConfig | None = None,
        config_path: Path | None = None,
        address_store: YamlAddressStore | None = None,
        permission: PermissionCheck | None = None,
    ) -> None:
        loaded = load_dialects()
        self.dialects = loaded.dialects
        self.load_warnings = loaded.warnings
        self.config = config or load_config(config_path)
        self.backend = backend or BleakBackend()
        self.address_store = address_store or YamlAddressStore()
        self.permission = permission

    def list_dialects(self) -> list[Dialect]:
        return sorted(self.dialects.values(), key=lambda d: d.id)

    def dialect(self, dialect_id: str | None = None) -> Dialect:
        wanted = dialect_id or self.config.dialect
        dialect = self.dialects.get(wanted)
        if dialect is None:
            available = ", ".join(sorted(self.dialects))
            raise DialectLoadError(f"Unknown dialect '{wanted}'. Available: {available}")
        return dialect

    def new_session(
        self,
        dialect_id: str | None = None,
        *,
        message_sink: MessageSink | None = None,
    ) -> DeviceSession:
        return DeviceSession(
            self.backend,
            self.dialect(dialect_id),
            config=self.config,
            permission=self.permission,
            address_store=self.address_store,
            message_sink=message_sink,
        )

    def scan(self, duration_s: float | None = None) -> list[PeripheralHandle]:
        return asyncio.run(self._scan(duration_s or self.config.scan_duration_s))

    def resolve_device(self, device_hint: str | None) -> PeripheralHandle:
        if not device_hint:
            saved = self.address_store.load(ADDRESS_KEY)
            if not saved:
                raise DeviceSelectionError(
                    "No device given and no previously connected device saved. Use --device."
                )
            LOGGER.info("Using last connected device %s", saved)
            return PeripheralHandle(address=saved)

        if is_full_address(device_hint):
            return PeripheralHandle(address=device_hint.strip())

        devices = self.scan()
        if not devices:
            raise DeviceSelectionError("No BLE peripherals found. Ensure the device is advertising.")
        matches = best_devices_for_hint(devices, device_hint)
        if not matches:
            raise DeviceSelectionError(f"No device found matching '{device_hint}'")
        if len(matches) > 1:
            candidate_desc = ", ".join(device.label for device in matches)
            raise DeviceSelectionError(
                f"Multiple candidate devices found: {candidate_desc}. Use a full address."
            )
        return matches[0]

    def get_values(
        self,
        parameters: Sequence[str] = (),
        device_hint: str | None = None,
        dialect_id: str | None = None,
    ) -> ReadResult:
        dialect = self.dialect(dialect_id)
        wanted = [resolve_parameter(dialect, p) for p in parameters] or list(dialect.parameters)
        if not dialect.parameter_token:
            wanted = wanted[:1]
        device = self.resolve_device(device_hint)
        return asyncio.run(self._get_values(dialect, device, wanted))

    def set_value(
        self,
        parameter: str,
        value: str,
        device_hint: str | None = None,
        dialect_id: str | None = None,
    ) -> SendResult:
        dialect = self.dialect(dialect_id)
        device = self.resolve_device(device_hint)
        return asyncio.run(self._set_value(dialect, device, parameter, value))

    def send_raw(
        self,
        message: str,
        device_hint: str | None = None,
        dialect_id: str | None = None,
    ) -> SendResult:
        dialect = self.dialect(dialect_id)
        device = self.resolve_device(device_hint)
        return asyncio.run(self._send_raw(dialect, device, message))

    def monitor(
        self,
        on_message: Callable[[str], None],
        device_hint: str | None = None,
        dialect_id: str | None = None,
        *,
        duration_s: float | None = None,
        on_state: Callable[[SessionSnapshot], None] | None = None,
    ) -> SessionSnapshot:
        dialect = self.dialect(dialect_id)
        device = self.resolve_device(device_hint)
        return asyncio.run(self._monitor(dialect, device, on_message, duration_s, on_state))

    async def _scan(self, duration_s: float) -> list[PeripheralHandle]:
        async with self.new_session() as session:
            _raise_for(await session.start_scan())
            await asyncio.sleep(duration_s)
            await session.stop_scan()
            await session.drain()
            return list(session.snapshot.devices)

    async def _connect(self, session: DeviceSession, device: PeripheralHandle) -> SessionSnapshot:
        _raise_for(await session.connect(device))
        timeout = self.config.connect_timeout_s + self.config.settle_delay_s + 1.0
        try:
            snapshot = await session.wait_for(
                lambda s: s.state in (SessionState.READY, SessionState.DISCONNECTED),
                timeout,
            )
        except SessionTimeoutError as exc:
            raise LinkFailureError(f"Timed out connecting to {device.address}") from exc
        if snapshot.state is not SessionState.READY:
            error = snapshot.last_error
            raise error if error is not None else LinkFailureError(f"Could not connect to {device.address}")
        if not snapshot.write_bound:
            raise WriteCharacteristicMissingError(
                f"{device.address} does not expose write characteristic {session.dialect.write_char_uuid}"
            )
        return snapshot

    async def _settle_writes(self, session: DeviceSession) -> None:
        await session.drain()
        error = session.snapshot.last_error
        if isinstance(error, WriteFailedError):
            raise error

    async def _get_values(
        self,
        dialect: Dialect,
        device: PeripheralHandle,
        parameters: list[ParameterName],
    ) -> ReadResult:
        async with self.new_session(dialect.id) as session:
            await self._connect(session, device)
            for parameter in parameters:
                _raise_for(await session.get_value(parameter))
            await self._settle_writes(session)
            try:
                await session.wait_for(
                    lambda s: all(p in s.values for p in parameters),
                    self.config.response_wait_s,
                )
            except SessionTimeoutError:
                LOGGER.info("Not every parameter answered within %.1fs", self.config.response_wait_s)
            snapshot = session.snapshot
            await session.disconnect()
            return ReadResult(
                device=device,
                dialect=dialect.id,
                values={p: snapshot.value_of(p) for p in parameters},
                last_message=snapshot.last_message,
            )

    async def _set_value(
        self,
        dialect: Dialect,
        device: PeripheralHandle,
        parameter: str,
        value: str,
    ) -> SendResult:
        async with self.new_session(dialect.id) as session:
            await self._connect(session, device)
            result = _raise_for(await session.set_value(parameter, value))
            await self._settle_writes(session)
            confirmed = False
            if result.payload is not None:
                slot = resolve_parameter(dialect, parameter)
                try:
                    await session.wait_for(
                        lambda s: s.values.get(slot) is not None
                        and s.values[slot].status is ValueStatus.CONFIRMED,
                        self.config.response_wait_s,
                    )
                    confirmed = True
                except SessionTimeoutError:
                    LOGGER.info("No confirmation for %s within %.1fs", parameter, self.config.response_wait_s)
            await session.disconnect()
            return SendResult(
                device=device,
                dialect=dialect.id,
                command="set_value",
                payload=result.payload,
                confirmed=confirmed,
            )

    async def _send_raw(self, dialect: Dialect, device: PeripheralHandle, message: str) -> SendResult:
        async with self.new_session(dialect.id) as session:
            await self._connect(session, device)
            result = _raise_for(await session.write_characteristic(message))
            await self._settle_writes(session)
            await session.disconnect()
            return SendResult(
                device=device,
                dialect=dialect.id,
                command="write_characteristic",
                payload=result.payload,
            )

    async def _monitor(
        self,
        dialect: Dialect,
        device: PeripheralHandle,
        on_message: Callable[[str], None],
        duration_s: float | None,
        on_state: Callable[[SessionSnapshot], None] | None,
    ) -> SessionSnapshot:
        async with self.new_session(dialect.id, message_sink=on_message) as session:
            unsubscribe = self._watch_state(session, on_state)
            try:
                await self._connect(session, device)
                if duration_s is None:
                    await asyncio.Event().wait()
                else:
                    await asyncio.sleep(duration_s)
                snapshot = session.snapshot
                await session.disconnect()
                return snapshot
            finally:
                unsubscribe()

    @staticmethod
    def _watch_state(
        session: DeviceSession,
        on_state: Callable[[SessionSnapshot], None] | None,
    ) -> Callable[[], None]:
        if on_state is None:
            return lambda: None
        last: list[SessionState] = [session.snapshot.state]

        def _listener(snapshot: SessionSnapshot) -> None:
            if snapshot.state is not last[0]:
                last[0] = snapshot.state
                on_state(snapshot)

        return session.subscribe(_listener)

