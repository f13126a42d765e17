"""BLE GATT backend implementation on top of bleak."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from bluecontrol.core.errors import LinkFailureError, WriteFailedError
from bluecontrol.core.model import CharacteristicInfo, PeripheralHandle
from bluecontrol.transports.base import NotifyHandler

LOGGER = logging.getLogger(__name__)


class BleakLink:
    def __init__(self, client: BleakClient) -> None:
        self._client = client
        self.address = client.address

    async def discover(self) -> Sequence[CharacteristicInfo]:
        characteristics: list[CharacteristicInfo] = []
        for service in self._client.services:
            LOGGER.debug("Service: %s", service.uuid)
            for char in service.characteristics:
                characteristics.append(
                    CharacteristicInfo(
                        uuid=char.uuid.lower(),
                        descriptors=tuple(d.uuid.lower() for d in char.descriptors),
                        properties=tuple(char.properties),
                    )
                )
        return characteristics

    async def start_notify(self, uuid: str, handler: NotifyHandler) -> None:
        def _notify_handler(sender: BleakGATTCharacteristic, data: bytearray) -> None:
            handler(sender.uuid.lower(), bytes(data))

        await self._client.start_notify(uuid, _notify_handler)

    async def write(self, uuid: str, payload: bytes, *, response: bool = True) -> None:
        try:
            await self._client.write_gatt_char(uuid, payload, response=response)
        except (BleakError, OSError, TimeoutError) as exc:
            raise WriteFailedError(f"BLE write to {uuid} failed: {exc}") from exc

    async def close(self) -> None:
        if self._client.is_connected:
            await self._client.disconnect()


class BleakBackend:
    def __init__(self) -> None:
        self._scanner: BleakScanner | None = None

    async def start_scan(self, on_found: Callable[[PeripheralHandle], None]) -> None:
        if self._scanner is not None:
            return

        def _detection(device: BLEDevice, adv: AdvertisementData) -> None:
            on_found(PeripheralHandle(address=device.address, name=adv.local_name or device.name))

        scanner = BleakScanner(detection_callback=_detection)
        await scanner.start()
        self._scanner = scanner

    async def stop_scan(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is not None:
            await scanner.stop()

    async def connect(
        self,
        address: str,
        *,
        on_lost: Callable[[], None],
        timeout_s: float = 10.0,
    ) -> BleakLink:
        client = BleakClient(
            address,
            timeout=timeout_s,
            disconnected_callback=lambda _client: on_lost(),
        )
        try:
            await client.connect()
        except (BleakError, OSError, TimeoutError) as exc:
            raise LinkFailureError(f"BLE connect failed for {address}: {exc}") from exc
        if not client.is_connected:
            raise LinkFailureError(f"BLE connect failed for {address}")
        return BleakLink(client)
