"""Text command protocol: GET/SET encoding, numeric validation, notification decoding."""

from __future__ import annotations

import re

from bluecontrol.core.errors import ProtocolValidationError
from bluecontrol.core.model import CharacteristicRole, Dialect, ParameterName, RoleKind

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


def _token(dialect: Dialect, word: str) -> str:
    return word.upper() if dialect.token_case == "upper" else word.lower()


def is_numeric(value: str, dialect: Dialect) -> bool:
    pattern = _INTEGER_RE if dialect.numeric == "integer" else _FLOAT_RE
    return bool(pattern.match(value))


def resolve_parameter(dialect: Dialect, parameter: str | ParameterName) -> ParameterName:
    try:
        resolved = ParameterName(str(getattr(parameter, "value", parameter)).lower())
    except ValueError as exc:
        raise ProtocolValidationError(f"Unknown parameter '{parameter}'") from exc
    if resolved not in dialect.read_characteristics:
        available = ", ".join(p.value for p in dialect.parameters)
        raise ProtocolValidationError(
            f"Dialect '{dialect.id}' does not carry parameter '{resolved.value}'. Available: {available}"
        )
    return resolved


def encode_get(dialect: Dialect, parameter: ParameterName) -> str:
    if not dialect.parameter_token:
        return "GET"
    return f"GET {_token(dialect, parameter.value)}"


def encode_set(dialect: Dialect, parameter: ParameterName, value: str) -> str:
    value = value.strip()
    if not is_numeric(value, dialect):
        kind = "an integer" if dialect.numeric == "integer" else "a number"
        raise ProtocolValidationError(
            f"Value '{value}' for '{parameter.value}' must be {kind}"
        )
    if not dialect.parameter_token:
        return f"SET {value}"
    return f"SET {_token(dialect, parameter.value)} {value}"


def validate_raw(dialect: Dialect, message: str) -> str:
    """Check a raw message against the dialect's write strictness."""
    if not message.strip():
        raise ProtocolValidationError("Refusing to send an empty message")
    if dialect.strict_raw_writes:
        tokens = message.split(" ")
        if not is_numeric(tokens[-1], dialect):
            raise ProtocolValidationError(f"Invalid numeric value in message: {message}")
    return message


def classify(dialect: Dialect, uuid: str) -> CharacteristicRole:
    normalized = uuid.lower()
    if normalized == dialect.write_char_uuid:
        return CharacteristicRole(kind=RoleKind.WRITE)
    for parameter, read_uuid in dialect.read_characteristics.items():
        if normalized == read_uuid:
            return CharacteristicRole(kind=RoleKind.READ, parameter=parameter)
    return CharacteristicRole(kind=RoleKind.UNKNOWN)


def decode_notification(dialect: Dialect, data: bytes) -> tuple[str, str | None]:
    """Decode a notification payload.

    Returns the trimmed message and the value to store for its parameter, or
    ``None`` when a prefixed dialect receives a message without the prefix.
    """
    message = bytes(data).decode("utf-8", errors="replace").strip()
    if dialect.value_prefix is None:
        return message, message
    if message.startswith(dialect.value_prefix):
        return message, message[len(dialect.value_prefix):].strip()
    return message, None
