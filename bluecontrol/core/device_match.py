"""Device-hint matching against discovered peripherals."""

from __future__ import annotations

import re

from bluecontrol.core.model import PeripheralHandle

ADDRESS_RE = re.compile(r"^[0-9A-F]{2}(?::[0-9A-F]{2}){5}$|^[0-9A-F]{8}-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{12}$", re.IGNORECASE)


def is_full_address(hint: str) -> bool:
    """True for a MAC address, or a CoreBluetooth UUID as reported on macOS."""
    return bool(ADDRESS_RE.match(hint.strip()))


def match_score(device: PeripheralHandle, hint: str) -> int:
    lowered = hint.strip().lower()
    address = device.address.lower()
    name = (device.name or "").lower()
    if address == lowered:
        return 3
    if address.startswith(lowered):
        return 2
    if lowered and lowered in name:
        return 1
    return 0


def best_devices_for_hint(devices: list[PeripheralHandle], hint: str) -> list[PeripheralHandle]:
    """Return the devices sharing the highest non-zero score for hint."""
    best: list[PeripheralHandle] = []
    best_score = 0
    for device in devices:
        score = match_score(device, hint)
        if score > best_score:
            best = [device]
            best_score = score
        elif score and score == best_score:
            best.append(device)
    return best
