"""Persistence of the last bound device address."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

from bluecontrol.core.dialect_loader import read_yaml
from bluecontrol.core.errors import StateFileError

LOGGER = logging.getLogger(__name__)


def default_state_path() -> Path:
    xdg_state = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local/state"))
    return xdg_state / "bluecontrol/state.yaml"


class YamlAddressStore:
    """Key/value store kept in a small YAML document."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or default_state_path()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            doc = read_yaml(self.path, unreadable=StateFileError, invalid=StateFileError)
        except StateFileError as exc:
            LOGGER.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return {}
        return {str(key): str(value) for key, value in doc.items() if value is not None}

    def save(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(yaml.safe_dump(data, sort_keys=True), encoding="utf-8")

    def load(self, key: str) -> str | None:
        return self._read().get(key)
