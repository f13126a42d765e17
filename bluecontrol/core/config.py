"""Session configuration loaded from YAML."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from jsonschema import ValidationError

from bluecontrol.core.dialect_loader import load_schema_validator, normalize_bool, read_yaml
from bluecontrol.core.errors import ConfigError
from bluecontrol.core.model import SessionConfig


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "bluecontrol/config.yaml"


def load_config(path: Path | None = None) -> SessionConfig:
    """Load the session configuration.

    A missing file at the default location yields the defaults; an explicitly
    requested file must exist.
    """
    explicit = path is not None
    config_path = path or default_config_path()
    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Config file {config_path} does not exist")
        return SessionConfig()

    doc = read_yaml(config_path, unreadable=ConfigError, invalid=ConfigError)
    return build_config(doc, source=str(config_path))


def build_config(doc: dict[str, Any], *, source: str = "<config>") -> SessionConfig:
    validator = load_schema_validator("config.schema.json")
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    values = dict(doc)
    if "write_with_response" in values:
        values["write_with_response"] = normalize_bool(
            values["write_with_response"], context="write_with_response", invalid=ConfigError
        )
    for name, value in list(values.items()):
        if name.endswith("_s") or name == "reconnect_backoff":
            values[name] = float(value)
    return SessionConfig(**values)
