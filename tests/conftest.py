from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from bluecontrol.core.dialect_loader import CCCD_UUID, load_dialects
from bluecontrol.core.errors import LinkFailureError, WriteFailedError
from bluecontrol.core.model import CharacteristicInfo, Dialect, PeripheralHandle, SessionConfig


class FakeLink:
    def __init__(
        self,
        address: str,
        characteristics: list[CharacteristicInfo],
        on_lost: Callable[[], None],
    ) -> None:
        self.address = address
        self.characteristics = characteristics
        self.on_lost = on_lost
        self.notify_handlers: dict[str, Callable[[str, bytes], None]] = {}
        self.writes: list[tuple[str, bytes]] = []
        self.fail_writes = False
        self.closed = False

    async def discover(self) -> list[CharacteristicInfo]:
        return self.characteristics

    async def start_notify(self, uuid: str, handler: Callable[[str, bytes], None]) -> None:
        self.notify_handlers[uuid] = handler

    async def write(self, uuid: str, payload: bytes, *, response: bool = True) -> None:
        if self.fail_writes:
            raise WriteFailedError(f"write to {uuid} rejected")
        self.writes.append((uuid, payload))

    async def close(self) -> None:
        self.closed = True

    def notify(self, uuid: str, text: str) -> None:
        self.notify_handlers[uuid](uuid, text.encode("utf-8"))

    def drop(self) -> None:
        self.on_lost()

    @property
    def sent(self) -> list[str]:
        return [payload.decode("utf-8") for _, payload in self.writes]


class FakeBackend:
    def __init__(self, characteristics: list[CharacteristicInfo]) -> None:
        self.characteristics = characteristics
        self.on_found: Callable[[PeripheralHandle], None] | None = None
        self.scanning = False
        self.scan_starts = 0
        self.connects: list[str] = []
        self.links: list[FakeLink] = []
        self.fail_connect = False
        self.gate: asyncio.Event | None = None
        self.devices: list[PeripheralHandle] = []
        self.link_factory: Callable[..., FakeLink] = FakeLink

    async def start_scan(self, on_found: Callable[[PeripheralHandle], None]) -> None:
        self.on_found = on_found
        self.scanning = True
        self.scan_starts += 1
        for device in self.devices:
            on_found(device)

    async def stop_scan(self) -> None:
        self.scanning = False

    def advertise(self, address: str, name: str | None = None) -> None:
        assert self.on_found is not None
        self.on_found(PeripheralHandle(address=address, name=name))

    async def connect(
        self,
        address: str,
        *,
        on_lost: Callable[[], None],
        timeout_s: float = 10.0,
    ) -> FakeLink:
        self.connects.append(address)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_connect:
            raise LinkFailureError(f"BLE connect failed for {address}")
        link = self.link_factory(address, list(self.characteristics), on_lost)
        self.links.append(link)
        return link

    @property
    def link(self) -> FakeLink:
        return self.links[-1]


def gatt_table(dialect: Dialect, *, without_descriptor: tuple[str, ...] = ()) -> list[CharacteristicInfo]:
    chars = [
        CharacteristicInfo(
            uuid=uuid,
            descriptors=() if parameter.value in without_descriptor else (CCCD_UUID,),
            properties=("notify",),
        )
        for parameter, uuid in dialect.read_characteristics.items()
    ]
    chars.append(CharacteristicInfo(uuid=dialect.write_char_uuid, properties=("write",)))
    chars.append(CharacteristicInfo(uuid="00002a19-0000-1000-8000-00805f9b34fb", properties=("read",)))
    return chars


@pytest.fixture(autouse=True)
def isolated_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    return tmp_path


@pytest.fixture
def dialects() -> dict[str, Dialect]:
    return load_dialects().dialects


@pytest.fixture
def multi(dialects: dict[str, Dialect]) -> Dialect:
    return dialects["multi_channel"]


@pytest.fixture
def single(dialects: dict[str, Dialect]) -> Dialect:
    return dialects["single_channel"]


@pytest.fixture
def fast_config() -> SessionConfig:
    return SessionConfig(settle_delay_s=0.0, reconnect_delay_s=60.0, response_wait_s=0.05)


@pytest.fixture
def backend(multi: Dialect) -> FakeBackend:
    return FakeBackend(gatt_table(multi))


@pytest.fixture
def make_backend() -> Callable[..., FakeBackend]:
    def _make(dialect: Dialect, **kwargs: tuple[str, ...]) -> FakeBackend:
        return FakeBackend(gatt_table(dialect, **kwargs))

    return _make
