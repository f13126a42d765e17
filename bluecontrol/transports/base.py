"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol

from bluecontrol.core.model import CharacteristicInfo, PeripheralHandle

NotifyHandler = Callable[[str, bytes], None]


class Link(Protocol):
    address: str

    async def discover(self) -> Sequence[CharacteristicInfo]:
        """Return every characteristic exposed by the peripheral."""

    async def start_notify(self, uuid: str, handler: NotifyHandler) -> None:
        """Enable notifications on a characteristic and route payloads to handler."""

    async def write(self, uuid: str, payload: bytes, *, response: bool = True) -> None:
        """Write payload to a characteristic."""

    async def close(self) -> None:
        """Tear down the link. Must be safe to call more than once."""


class BLEBackend(Protocol):
    async def start_scan(self, on_found: Callable[[PeripheralHandle], None]) -> None:
        """Begin scanning and report every advertisement to on_found."""

    async def stop_scan(self) -> None:
        """Stop a running scan. Idempotent."""

    async def connect(
        self,
        address: str,
        *,
        on_lost: Callable[[], None],
        timeout_s: float = 10.0,
    ) -> Link:
        """Establish a link; on_lost fires once if it later drops."""
