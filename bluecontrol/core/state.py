"""Observable state container owned by a DeviceSession."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from bluecontrol.core.model import PeripheralHandle, SessionSnapshot

LOGGER = logging.getLogger(__name__)

Listener = Callable[[SessionSnapshot], None]


class StateStore:
    """Holds the current snapshot and notifies subscribers on every change.

    Only the owning session calls :meth:`update` and :meth:`add_device`;
    everyone else reads :attr:`snapshot` or subscribes.
    """

    def __init__(self) -> None:
        self._snapshot = SessionSnapshot()
        self._listeners: list[Listener] = []

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def update(self, **changes: Any) -> SessionSnapshot:
        self._snapshot = replace(self._snapshot, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception:
                LOGGER.exception("State listener failed")
        return self._snapshot

    def add_device(self, handle: PeripheralHandle) -> bool:
        """Insert a scan result, de-duplicated by address.

        A later sighting only fills in a name that was missing. Returns True
        when the set changed.
        """
        devices = list(self._snapshot.devices)
        for index, known in enumerate(devices):
            if known.address.upper() != handle.address.upper():
                continue
            if known.name or not handle.name:
                return False
            devices[index] = replace(known, name=handle.name)
            self.update(devices=tuple(devices))
            return True
        devices.append(handle)
        self.update(devices=tuple(devices))
        return True
