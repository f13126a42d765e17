"""Dialect loading and validation for YAML-based protocol dialects."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from bluecontrol.core.errors import BluecontrolError, DialectLoadError, DialectValidationError
from bluecontrol.core.model import Dialect, ParameterName

_UUID_RE = re.compile(r"^[0-9a-f]{4}$|^[0-9a-f]{8}$|^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
_BASE_UUID_SUFFIX = "-0000-1000-8000-00805f9b34fb"
CCCD_UUID = "00002902" + _BASE_UUID_SUFFIX
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise yaml.constructor.ConstructorError(
                "while constructing a mapping",
                node.start_mark,
                f"found duplicate key '{key}'",
                key_node.start_mark,
            )
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedDialects:
    dialects: dict[str, Dialect]
    warnings: tuple[str, ...]


def load_schema_validator(name: str) -> Any:
    schema_text = resources.files("bluecontrol.schemas").joinpath(name).read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _dialect_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "bluecontrol/dialects", xdg_data / "bluecontrol/dialects"


def read_yaml(
    path: Path | Traversable,
    *,
    unreadable: type[BluecontrolError] = DialectLoadError,
    invalid: type[BluecontrolError] = DialectValidationError,
) -> dict[str, Any]:
    """Read a YAML mapping, raising ``unreadable`` or ``invalid`` on failure."""
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise unreadable(f"Could not read file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise invalid(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise invalid(f"File {path} must contain a mapping at root")
    return loaded


def normalize_uuid(value: str, *, context: str) -> str:
    """Return the lowercase 128-bit form of a 16-, 32- or 128-bit UUID string."""
    normalized = value.strip().lower()
    if not _UUID_RE.match(normalized):
        raise DialectValidationError(
            f"{context} must be a 16-bit, 32-bit, or 128-bit UUID string"
        )
    if len(normalized) == 4:
        return f"0000{normalized}{_BASE_UUID_SUFFIX}"
    if len(normalized) == 8:
        return f"{normalized}{_BASE_UUID_SUFFIX}"
    return normalized


def normalize_bool(
    value: Any,
    *,
    context: str,
    invalid: type[BluecontrolError] = DialectValidationError,
) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise invalid(f"{context} must be boolean true/false")


def _build_dialect(doc: dict[str, Any], source: Path | Traversable) -> Dialect:
    validator = load_schema_validator("dialect.schema.json")
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise DialectValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    dialect_id = doc["id"]
    read_characteristics: dict[ParameterName, str] = {}
    seen: dict[str, str] = {}
    for parameter, uuid in doc["read_characteristics"].items():
        context = f"{dialect_id}.read_characteristics.{parameter}"
        normalized = normalize_uuid(uuid, context=context)
        if normalized in seen:
            raise DialectValidationError(
                f"{context} reuses UUID {normalized} already bound to '{seen[normalized]}'"
            )
        seen[normalized] = parameter
        read_characteristics[ParameterName(parameter)] = normalized

    write_uuid = normalize_uuid(doc["write_char_uuid"], context=f"{dialect_id}.write_char_uuid")
    if write_uuid in seen:
        raise DialectValidationError(
            f"{dialect_id}.write_char_uuid collides with read characteristic '{seen[write_uuid]}'"
        )

    parameter_token = normalize_bool(
        doc.get("parameter_token", True),
        context=f"{dialect_id}.parameter_token",
    )
    if not parameter_token and len(read_characteristics) != 1:
        raise DialectValidationError(
            f"{dialect_id}: dialects without parameter tokens must carry exactly one parameter"
        )

    auto_get = doc.get("auto_get_delay_s")
    return Dialect(
        id=dialect_id,
        name=doc["name"],
        token_case=doc.get("token_case", "lower"),
        parameter_token=parameter_token,
        numeric=doc.get("numeric", "float"),
        strict_raw_writes=normalize_bool(
            doc.get("strict_raw_writes", False),
            context=f"{dialect_id}.strict_raw_writes",
        ),
        value_prefix=doc.get("value_prefix") or None,
        auto_get_delay_s=float(auto_get) if auto_get is not None else None,
        write_char_uuid=write_uuid,
        descriptor_uuid=normalize_uuid(
            doc.get("descriptor_uuid", CCCD_UUID),
            context=f"{dialect_id}.descriptor_uuid",
        ),
        read_characteristics=read_characteristics,
    )


def _iter_packaged_dialect_paths() -> list[Traversable]:
    dialect_root = resources.files("bluecontrol.dialects")
    return [item for item in dialect_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_dialect_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in _dialect_dirs():
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def load_dialects() -> LoadedDialects:
    dialects: dict[str, Dialect] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_dialect_paths(), key=lambda p: p.name):
        dialect = _build_dialect(read_yaml(path), path)
        dialects[dialect.id] = dialect

    for path in _iter_user_dialect_paths():
        dialect = _build_dialect(read_yaml(path), path)
        if dialect.id in dialects:
            warning = f"User dialect '{dialect.id}' overrides packaged dialect"
            LOGGER.warning(warning)
            warnings.append(warning)
        dialects[dialect.id] = dialect

    return LoadedDialects(dialects=dialects, warnings=tuple(warnings))
