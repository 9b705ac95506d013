from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_status(payload: Dict[str, Any]) -> None:
    echo_heading("Session")
    echo_key_values(
        [
            ("state", payload.get("state")),
            ("port", payload.get("port")),
            ("line_count", payload.get("line_count")),
            ("record_count", payload.get("record_count")),
        ]
    )
    if payload.get("last_error"):
        typer.secho(f"last_error: {payload['last_error']}", fg=typer.colors.RED)


def render_read_summary(payload: Dict[str, Any]) -> None:
    echo_heading("Read Result")
    echo_key_values(
        [
            ("line_count", payload.get("line_count")),
            ("record_count", payload.get("record_count")),
        ]
    )

    errors = payload.get("errors") or []
    typer.echo()
    echo_heading("Skipped Lines")
    if errors:
        for error in errors:
            typer.echo(
                f"  - line {error.get('line_number')}: {error.get('reason')} ({error.get('line')})"
            )
    else:
        typer.echo("No lines skipped.")


def render_records(payload: Dict[str, Any]) -> None:
    header: List[str] = payload.get("header") or []
    label = header[4] if len(header) > 4 else "Chill units"
    rows = payload.get("rows") or []
    preview = payload.get("preview") or []
    echo_heading("Readings")
    if not rows:
        typer.echo("No readings parsed yet.")
        return
    for line, row in zip(preview, rows):
        typer.echo(
            f"{line} — {label} {row.get('chill_units')} (total {row.get('cumulative_chill_units')})"
        )


def render_diagnostics(items: Iterable[Dict[str, Any]]) -> None:
    colors = {"WARNING": typer.colors.YELLOW, "ERROR": typer.colors.RED}
    for item in items:
        typer.secho(
            f"[{item.get('sequence')}] {item.get('message')}",
            fg=colors.get(item.get("level", "")),
        )
