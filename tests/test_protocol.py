from __future__ import annotations

import pytest

from bluecontrol.core.errors import ProtocolValidationError
from bluecontrol.core.model import ParameterName, RoleKind
from bluecontrol.core.protocol import (
    classify,
    decode_notification,
    encode_get,
    encode_set,
    is_numeric,
    resolve_parameter,
    validate_raw,
)


def test_encode_get_follows_dialect(dialects) -> None:
    assert encode_get(dialects["multi_channel"], ParameterName.R_FREQ) == "GET r_freq"
    assert encode_get(dialects["multi_channel_upper"], ParameterName.R_FREQ) == "GET R_FREQ"
    assert encode_get(dialects["single_channel"], ParameterName.CURRENT) == "GET"


def test_encode_set_follows_dialect(dialects) -> None:
    assert encode_set(dialects["multi_channel"], ParameterName.VOLTAGE, " 12.5 ") == "SET voltage 12.5"
    assert encode_set(dialects["multi_channel_upper"], ParameterName.VOLUME, "-3") == "SET VOLUME -3"
    assert encode_set(dialects["single_channel"], ParameterName.CURRENT, "7") == "SET 7"


@pytest.mark.parametrize("value", ["", "abc", "1.2.3", "nan", "inf", "12 5"])
def test_encode_set_rejects_non_numeric(multi, value) -> None:
    with pytest.raises(ProtocolValidationError):
        encode_set(multi, ParameterName.CURRENT, value)


def test_integer_dialect_rejects_fractions(single) -> None:
    assert is_numeric("+4", single)
    assert not is_numeric("4.0", single)
    with pytest.raises(ProtocolValidationError):
        encode_set(single, ParameterName.CURRENT, "4.5")


@pytest.mark.parametrize("value", ["1", "-2", "0.5", ".5", "5.", "1e3", "+2.5E-1"])
def test_float_dialect_accepts_numbers(multi, value) -> None:
    assert is_numeric(value, multi)


def test_resolve_parameter(multi, single) -> None:
    assert resolve_parameter(multi, "Volume") is ParameterName.VOLUME
    assert resolve_parameter(multi, ParameterName.L_FREQ) is ParameterName.L_FREQ
    with pytest.raises(ProtocolValidationError, match="Unknown parameter"):
        resolve_parameter(multi, "power")
    with pytest.raises(ProtocolValidationError, match="does not carry"):
        resolve_parameter(single, "voltage")


def test_validate_raw_strictness(multi, single) -> None:
    assert validate_raw(multi, "SET voltage 3.3") == "SET voltage 3.3"
    with pytest.raises(ProtocolValidationError):
        validate_raw(multi, "SET voltage 3.3 ")
    with pytest.raises(ProtocolValidationError):
        validate_raw(multi, "GET voltage")
    assert validate_raw(single, "GET") == "GET"
    with pytest.raises(ProtocolValidationError):
        validate_raw(single, "   ")


def test_classify(multi) -> None:
    assert classify(multi, "0000FFA1-0000-1000-8000-00805F9B34FB").kind is RoleKind.WRITE
    role = classify(multi, "0000ffe2-0000-1000-8000-00805f9b34fb")
    assert role.kind is RoleKind.READ
    assert role.parameter is ParameterName.R_FREQ
    assert classify(multi, "00002a19-0000-1000-8000-00805f9b34fb").kind is RoleKind.UNKNOWN


def test_decode_notification(multi, single) -> None:
    assert decode_notification(multi, b" 42.0\r\n") == ("42.0", "42.0")
    assert decode_notification(single, b"Value: 17\n") == ("Value: 17", "17")
    assert decode_notification(single, b"BOOT OK") == ("BOOT OK", None)
    message, value = decode_notification(multi, b"\xff1")
    assert message == "�1"
    assert value == message
