from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_diagnostics, render_read_summary, render_records, render_status


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for driving the serial log export service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)

_TIMEOUT_HELP = "Seconds to wait on the device (default: wait indefinitely)."


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


def _save_export(client: ApiClient, out: Path, fmt: Optional[str], formulas: bool) -> None:
    export_format = fmt or (out.suffix.lstrip(".").lower() or "xlsx")
    if export_format not in {"xlsx", "csv"}:
        raise typer.BadParameter(f"Unsupported export format {export_format!r}.")
    content = client.export(fmt=export_format, formulas=formulas)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(content)
    typer.secho(f"Export saved to {out}", fg=typer.colors.GREEN)


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    http_timeout: Optional[float] = typer.Option(
        None,
        "--http-timeout",
        help="Seconds before a non-blocking request gives up.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, http_timeout=http_timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show the serial session state."""
    render_status(_get_state(ctx).client.status())


@app.command("connect")
def connect_command(
    ctx: typer.Context,
    port: Optional[str] = typer.Option(None, "--port", "-p", help="Serial device or pyserial URL."),
    baudrate: Optional[int] = typer.Option(None, "--baudrate", help="Baud rate (default 9600)."),
) -> None:
    """Open the serial port on the service."""
    state = _get_state(ctx)
    payload = state.client.connect(port=port, baudrate=baudrate)
    typer.secho(f"Connected: {payload.get('port')}", fg=typer.colors.GREEN)


@app.command("disconnect")
def disconnect_command(ctx: typer.Context) -> None:
    """Close the serial session."""
    _get_state(ctx).client.disconnect()
    typer.echo("Disconnected.")


@app.command("wait")
def wait_command(
    ctx: typer.Context,
    timeout: Optional[float] = typer.Option(None, "--timeout", help=_TIMEOUT_HELP),
) -> None:
    """Wait until the device reports its log file is ready."""
    state = _get_state(ctx)
    typer.echo("Waiting for trigger...")
    payload = state.client.wait(timeout=timeout)
    if not payload.get("found"):
        typer.secho("Trigger not received before timeout.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.secho("Trigger detected.", fg=typer.colors.GREEN)


@app.command("read")
def read_command(
    ctx: typer.Context,
    timeout: Optional[float] = typer.Option(None, "--timeout", help=_TIMEOUT_HELP),
) -> None:
    """Request the log from the device and parse it."""
    state = _get_state(ctx)
    typer.echo("Reading log...")
    render_read_summary(state.client.read(timeout=timeout))


@app.command("auto")
def auto_command(
    ctx: typer.Context,
    timeout: Optional[float] = typer.Option(None, "--timeout", help=_TIMEOUT_HELP),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Save the export here afterwards."),
    formulas: bool = typer.Option(False, "--formulas/--values", help="Write spreadsheet formulas."),
) -> None:
    """Wait for the trigger, read the log, and optionally save the export."""
    state = _get_state(ctx)
    typer.echo("Auto: wait -> read -> export")
    render_read_summary(state.client.auto(timeout=timeout))
    if out is not None:
        typer.echo()
        _save_export(state.client, out, None, formulas)


@app.command("records")
def records_command(ctx: typer.Context) -> None:
    """List the readings parsed by the last read."""
    render_records(_get_state(ctx).client.records())


@app.command("export")
def export_command(
    ctx: typer.Context,
    out: Path = typer.Option(Path("arduino_log.xlsx"), "--out", "-o", help="Destination file."),
    fmt: Optional[str] = typer.Option(None, "--format", "-f", help="xlsx or csv (default: from --out)."),
    formulas: bool = typer.Option(False, "--formulas/--values", help="Write spreadsheet formulas."),
) -> None:
    """Download the export of the last read."""
    _save_export(_get_state(ctx).client, out, fmt, formulas)


@app.command("diagnostics")
def diagnostics_command(
    ctx: typer.Context,
    since: int = typer.Option(0, "--since", min=0, help="Only messages after this sequence number."),
) -> None:
    """Print progress and problem messages from the service."""
    render_diagnostics(_get_state(ctx).client.diagnostics(since=since))
