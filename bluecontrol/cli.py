"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from bluecontrol.core.errors import BluecontrolError
from bluecontrol.core.model import SessionSnapshot
from bluecontrol.core.service import ControlService

app = typer.Typer(help="Control a BLE peripheral over its GET/SET text protocol")

_options: dict[str, object] = {"config": None, "verbose": False}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.yaml"),
) -> None:
    _options["config"] = config
    _options["verbose"] = verbose
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_service() -> ControlService:
    config_path = _options["config"]
    service = ControlService(config_path=config_path if isinstance(config_path, Path) else None)
    config = getattr(service, "config", None)
    if _options["verbose"]:
        logging.getLogger().setLevel(logging.DEBUG)
    elif config is not None:
        logging.getLogger().setLevel(config.log_level)
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


@app.command("dialects")
def list_dialects() -> None:
    """List available protocol dialects and their parameters."""
    try:
        service = _build_service()
        dialects = service.list_dialects()
        if not dialects:
            typer.echo("No dialects loaded")
            raise typer.Exit(code=1)

        for dialect in dialects:
            typer.echo(f"{dialect.id}: {dialect.name}")
            params = ", ".join(p.value for p in dialect.parameters)
            typer.echo(f"  parameters: {params}")
    except BluecontrolError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("scan")
def scan(
    duration: float | None = typer.Option(None, "--duration", help="Scan time in seconds"),
) -> None:
    """Scan for advertising BLE peripherals."""
    try:
        service = _build_service()
        devices = service.scan(duration)
        if not devices:
            typer.echo("No BLE peripherals found")
            return

        for device in devices:
            typer.echo(f"{device.address} {device.name or '<unknown-device>'}")
    except BluecontrolError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("get")
def get_values(
    parameters: list[str] | None = typer.Argument(None, help="Parameters to query (default: all)"),
    device: str | None = typer.Option(None, "--device", help="Address or partial name"),
    dialect: str | None = typer.Option(None, "--dialect", help="Dialect ID"),
) -> None:
    """Request parameter values and print what the peripheral reports."""
    try:
        service = _build_service()
        result = service.get_values(parameters or (), device_hint=device, dialect_id=dialect)
        typer.echo(f"Device: {result.device.address} via {result.dialect}")
        for parameter, value in result.values.items():
            typer.echo(f"  {parameter.value}: {value if value is not None else '-'}")
    except BluecontrolError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("set")
def set_value(
    parameter: str,
    value: str,
    device: str | None = typer.Option(None, "--device", help="Address or partial name"),
    dialect: str | None = typer.Option(None, "--dialect", help="Dialect ID"),
) -> None:
    """Set a parameter to a numeric value."""
    try:
        service = _build_service()
        result = service.set_value(parameter, value, device_hint=device, dialect_id=dialect)
        if result.payload is None:
            typer.echo(f"Nothing sent for '{parameter}'")
            return
        status = "confirmed" if result.confirmed else "unconfirmed"
        typer.echo(f"Sent '{result.payload}' to {result.device.address} ({status})")
    except BluecontrolError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("send")
def send_raw(
    message: str,
    device: str | None = typer.Option(None, "--device", help="Address or partial name"),
    dialect: str | None = typer.Option(None, "--dialect", help="Dialect ID"),
) -> None:
    """Write a raw message to the write characteristic."""
    try:
        service = _build_service()
        result = service.send_raw(message, device_hint=device, dialect_id=dialect)
        typer.echo(f"Sent '{result.payload}' to {result.device.address}")
    except BluecontrolError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("monitor")
def monitor(
    device: str | None = typer.Option(None, "--device", help="Address or partial name"),
    dialect: str | None = typer.Option(None, "--dialect", help="Dialect ID"),
    duration: float | None = typer.Option(None, "--duration", help="Stop after N seconds"),
) -> None:
    """Stay connected and print every notification until interrupted."""

    def _on_state(snapshot: SessionSnapshot) -> None:
        typer.echo(f"[{snapshot.state.value}]", err=True)

    try:
        service = _build_service()
        service.monitor(
            typer.echo,
            device_hint=device,
            dialect_id=dialect,
            duration_s=duration,
            on_state=_on_state,
        )
    except KeyboardInterrupt:
        typer.echo("Stopped", err=True)
    except BluecontrolError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
