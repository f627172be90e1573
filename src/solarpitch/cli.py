"""Command line entrypoint for solarpitch.

Implements three commands:

* ``run``: size an installation from a request file and write the payload.
* ``audit``: run the calculation and print every audit issue.
* ``validate``: check saved payloads against the response schema.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import typer

from solarpitch.cli_utils import format_issue, kpi_table, load_validator, write_payload
from solarpitch.core.config import ConfigError, load_request
from solarpitch.core.debug import NullDebugCollector, build_debug_collector
from solarpitch.service import compute_scenarios, run_calculation

__version__ = "0.1.0"

app = typer.Typer(add_completion=False, help="Residential PV sizing and pitch calculator")


def _exit_with_error(msg: str) -> None:
    typer.echo(f"Error: {msg}", err=True)
    raise typer.Exit(code=1)


@app.command()
def run(
    request: Path = typer.Option(..., "--request", "-r", exists=True, readable=True, help="Request YAML/JSON file"),
    output: Optional[Path] = typer.Option(None, help="Output file path; defaults to results.<format>"),
    format: str = typer.Option("json", "--format", "-f", help="Output format: json or csv"),
    debug: Optional[Path] = typer.Option(None, help="Write debug events to this path (.json or .jsonl)"),
    schema: Optional[Path] = typer.Option(None, help="Response schema YAML/JSON; defaults to the bundled schema"),
    no_schema: bool = typer.Option(False, "--no-schema", help="Skip response validation (payload marked unverified)"),
):
    """Size the installation and write the response payload."""

    fmt = format.lower()
    if fmt not in {"json", "csv"}:
        _exit_with_error("format must be json or csv")

    try:
        calc_request = load_request(request)
        validator = load_validator(schema, disabled=no_schema)
    except ConfigError as exc:
        _exit_with_error(str(exc))

    with (build_debug_collector(debug) if debug else NullDebugCollector()) as debug_collector:
        payload = run_calculation(calc_request, validator=validator, debug=debug_collector)

    output_path = output or Path(f"results.{fmt}")
    if not payload.get("ok"):
        if fmt == "json":
            write_payload(output_path, payload, fmt)
        detail = payload.get("message") or "; ".join(payload.get("details", []))
        _exit_with_error(f"{payload.get('error')}: {detail}")

    try:
        write_payload(output_path, payload, fmt)
    except ConfigError as exc:
        _exit_with_error(str(exc))

    typer.echo(kpi_table(payload).to_string(index=False))
    winner = payload["winner"]
    typer.echo(f"Winner: {winner['code']} ({winner['reason']})")
    if not payload.get("schema_verified"):
        typer.echo("Warning: response not verified against a schema", err=True)
    typer.echo(f"Wrote results to {output_path}")
    if debug:
        typer.echo(f"Debug events -> {debug}")


@app.command()
def audit(
    request: Path = typer.Option(..., "--request", "-r", exists=True, readable=True, help="Request YAML/JSON file"),
):
    """Run the calculation and print itemised audit issues."""

    try:
        calc_request = load_request(request)
    except ConfigError as exc:
        _exit_with_error(str(exc))

    optimization, scenarios, report = compute_scenarios(calc_request)
    if report is None:
        _exit_with_error(optimization.error or "no viable candidate")

    for code, sc in scenarios.items():
        typer.echo(f"{code}: {sc.candidate.panels} panels, {sc.kwc:.2f} kWc, {sc.candidate.battery.units} battery unit(s)")
    for issue in report.issues:
        typer.echo(format_issue(issue))
    typer.echo(f"Audit {'OK' if report.ok else 'FAILED'}: {len(report.errors)} error(s), {len(report.warnings)} warning(s)")
    if not report.ok:
        raise typer.Exit(code=1)


@app.command()
def validate(
    files: List[Path] = typer.Argument(..., help="Saved response payloads (JSON)"),
    schema: Optional[Path] = typer.Option(None, help="Response schema YAML/JSON; defaults to the bundled schema"),
):
    """Check saved payloads against the response schema."""

    try:
        validator = load_validator(schema)
    except ConfigError as exc:
        _exit_with_error(str(exc))

    exit_code = 0
    for path in files:
        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            exit_code = 3
            typer.echo(f"ERROR: {path} - {exc}")
            continue
        problems = validator.validate(data)
        if problems:
            exit_code = max(exit_code, 2)
            typer.echo(f"INVALID: {path}")
            for problem in problems:
                typer.echo(f"  - {problem}")
        else:
            typer.echo(f"OK: {path}")
    raise typer.Exit(code=exit_code)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def version_callback(
    version: bool = typer.Option(
        False, "--version", callback=_show_version, is_eager=True, help="Show version and exit"
    ),
):
    """Residential PV sizing and pitch calculator."""


def main() -> None:  # pragma: no cover - thin wrapper for console_script
    app()


__all__ = ["app", "main"]


if __name__ == "__main__":  # pragma: no cover
    main()
