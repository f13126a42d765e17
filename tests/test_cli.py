from __future__ import annotations

from typer.testing import CliRunner

from bluecontrol import cli
from bluecontrol.core.errors import DeviceSelectionError, ProtocolValidationError
from bluecontrol.core.model import (
    Dialect,
    ParameterName,
    PeripheralHandle,
    ReadResult,
    SendResult,
    SessionConfig,
)

BOARD = PeripheralHandle(address="AA:BB:CC:DD:EE:01", name="Board")


class FakeService:
    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.config = SessionConfig()
        self.load_warnings: tuple[str, ...] = ()
        self.dialect = Dialect(
            id="multi_channel",
            name="Multi channel",
            token_case="lower",
            parameter_token=True,
            numeric="float",
            strict_raw_writes=True,
            value_prefix=None,
            auto_get_delay_s=None,
            write_char_uuid="0000ffa1-0000-1000-8000-00805f9b34fb",
            descriptor_uuid="00002902-0000-1000-8000-00805f9b34fb",
            read_characteristics={
                ParameterName.CURRENT: "0000ffa2-0000-1000-8000-00805f9b34fb",
                ParameterName.VOLTAGE: "0000ffb2-0000-1000-8000-00805f9b34fb",
            },
        )

    def list_dialects(self):
        return [self.dialect]

    def scan(self, duration_s=None):
        return [BOARD, PeripheralHandle(address="AA:BB:CC:DD:EE:02")]

    def get_values(self, parameters=(), device_hint=None, dialect_id=None):
        return ReadResult(
            device=BOARD,
            dialect="multi_channel",
            values={ParameterName.CURRENT: "0.8", ParameterName.VOLTAGE: None},
            last_message="0.8",
        )

    def set_value(self, parameter, value, device_hint=None, dialect_id=None):
        payload = None if parameter == "all" else f"SET {parameter} {value}"
        return SendResult(
            device=BOARD,
            dialect="multi_channel",
            command="set_value",
            payload=payload,
            confirmed=parameter == "voltage",
        )

    def send_raw(self, message, device_hint=None, dialect_id=None):
        return SendResult(device=BOARD, dialect="multi_channel", command="write_characteristic", payload=message)

    def monitor(self, on_message, device_hint=None, dialect_id=None, *, duration_s=None, on_state=None):
        on_message("12.5")
        on_message("hello")
        return None


runner = CliRunner()


def test_dialects_command(monkeypatch):
    monkeypatch.setattr(cli, "ControlService", FakeService)
    result = runner.invoke(cli.app, ["dialects"])
    assert result.exit_code == 0
    assert "multi_channel: Multi channel" in result.stdout
    assert "parameters: current, voltage" in result.stdout


def test_scan_command(monkeypatch):
    monkeypatch.setattr(cli, "ControlService", FakeService)
    result = runner.invoke(cli.app, ["scan", "--duration", "1"])
    assert result.exit_code == 0
    assert "AA:BB:CC:DD:EE:01 Board" in result.stdout
    assert "AA:BB:CC:DD:EE:02 <unknown-device>" in result.stdout


def test_get_command(monkeypatch):
    monkeypatch.setattr(cli, "ControlService", FakeService)
    result = runner.invoke(cli.app, ["get", "current", "voltage", "--device", "board"])
    assert result.exit_code == 0
    assert "Device: AA:BB:CC:DD:EE:01 via multi_channel" in result.stdout
    assert "current: 0.8" in result.stdout
    assert "voltage: -" in result.stdout


def test_set_command(monkeypatch):
    monkeypatch.setattr(cli, "ControlService", FakeService)
    result = runner.invoke(cli.app, ["set", "voltage", "12.5"])
    assert result.exit_code == 0
    assert "Sent 'SET voltage 12.5' to AA:BB:CC:DD:EE:01 (confirmed)" in result.stdout

    result = runner.invoke(cli.app, ["set", "current", "1"])
    assert "(unconfirmed)" in result.stdout


def test_set_all_reports_nothing_sent(monkeypatch):
    monkeypatch.setattr(cli, "ControlService", FakeService)
    result = runner.invoke(cli.app, ["set", "all", "1"])
    assert result.exit_code == 0
    assert "Nothing sent for 'all'" in result.stdout


def test_send_command(monkeypatch):
    monkeypatch.setattr(cli, "ControlService", FakeService)
    result = runner.invoke(cli.app, ["send", "SET volume 3"])
    assert result.exit_code == 0
    assert "Sent 'SET volume 3' to AA:BB:CC:DD:EE:01" in result.stdout


def test_monitor_command_prints_messages(monkeypatch):
    monkeypatch.setattr(cli, "ControlService", FakeService)
    result = runner.invoke(cli.app, ["monitor", "--duration", "0.1"])
    assert result.exit_code == 0
    lines = result.stdout.splitlines()
    assert "12.5" in lines
    assert "hello" in lines


def test_set_command_error_is_clean(monkeypatch):
    class FailingService(FakeService):
        def set_value(self, parameter, value, device_hint=None, dialect_id=None):
            raise ProtocolValidationError(f"Value '{value}' for '{parameter}' must be a number")

    monkeypatch.setattr(cli, "ControlService", FailingService)
    result = runner.invoke(cli.app, ["set", "voltage", "abc"])
    assert result.exit_code == 1
    assert "Error: Value 'abc' for 'voltage' must be a number" in result.stderr
    assert "Traceback" not in result.stdout
    assert "Traceback" not in result.stderr


def test_device_selection_error_is_clean(monkeypatch):
    class FailingService(FakeService):
        def get_values(self, parameters=(), device_hint=None, dialect_id=None):
            raise DeviceSelectionError("No device found matching 'lab'")

    monkeypatch.setattr(cli, "ControlService", FailingService)
    result = runner.invoke(cli.app, ["get", "--device", "lab"])
    assert result.exit_code == 1
    assert "Error: No device found matching 'lab'" in result.stderr


def test_load_warning_is_printed(monkeypatch):
    class WarnService(FakeService):
        def __init__(self, **kwargs) -> None:
            super().__init__(**kwargs)
            self.load_warnings = ("User dialect 'multi_channel' overrides packaged dialect",)

    monkeypatch.setattr(cli, "ControlService", WarnService)
    result = runner.invoke(cli.app, ["dialects"])
    assert result.exit_code == 0
    assert "Warning: User dialect 'multi_channel' overrides packaged dialect" in result.stderr


def test_config_option_is_forwarded(monkeypatch, tmp_path):
    seen: list[dict] = []

    class RecordingService(FakeService):
        def __init__(self, **kwargs) -> None:
            super().__init__(**kwargs)
            seen.append(kwargs)

    monkeypatch.setattr(cli, "ControlService", RecordingService)
    config = tmp_path / "config.yaml"
    result = runner.invoke(cli.app, ["--config", str(config), "dialects"])
    assert result.exit_code == 0
    assert seen == [{"config_path": config}]
