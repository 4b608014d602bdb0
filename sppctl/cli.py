"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer

from sppctl.api import Client
from sppctl.core.errors import SppctlError

LOGGER = logging.getLogger(__name__)

app = typer.Typer(help="Serial-port-profile transport for BLE and classic Bluetooth peripherals")

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)


def _build_client() -> Client:
    client = Client()
    for warning in getattr(client, "runtime_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return client


def _read_payload(payload: str | None, file: Path | None) -> bytes:
    if file is not None:
        try:
            return file.read_bytes()
        except OSError as exc:
            raise typer.BadParameter(f"Could not read {file}: {exc}") from exc
    if payload is None:
        raise typer.BadParameter("Provide a hex PAYLOAD or --file")
    try:
        return bytes.fromhex(payload.replace(" ", ""))
    except ValueError as exc:
        raise typer.BadParameter(f"PAYLOAD must be hex: {exc}") from exc


@app.command("devices")
def list_devices(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Scan for one window and list devices with their serial channels."""
    _configure_logging(verbose)
    try:
        client = _build_client()
        devices = asyncio.run(client.list_devices())
        if not devices:
            typer.echo("No Bluetooth devices found")
            return

        for device in devices:
            typer.echo(f"{device['address']} {device['name'] or '<unknown-device>'}")
            for service in device["services"]:
                typer.echo(f"  {service['channel']} {service['name']}")
    except SppctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("send")
def send(
    address: str,
    channel: str,
    payload: str | None = typer.Argument(None, help="Hex bytes, e.g. '1b40'"),
    file: Path | None = typer.Option(None, "--file", help="Send the raw contents of a file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Open ADDRESS on CHANNEL, write the payload, and close."""
    _configure_logging(verbose)
    data = _read_payload(payload, file)

    async def _send(client: Client) -> None:
        device = client.device(address, channel)
        await device.open()
        try:
            await device.write(data)
        except SppctlError:
            try:
                await device.close()
            except SppctlError as exc:
                LOGGER.warning("Close after failed write also failed: %s", exc)
            raise
        await device.close()

    try:
        client = _build_client()
        asyncio.run(_send(client))
        typer.echo(f"Sent {len(data)} bytes to {address} on {channel}")
    except SppctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
