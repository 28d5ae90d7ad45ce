"""CLI entrypoint for the data-driven booking suite."""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer

if __package__ in {None, ""}:
    current_file = Path(__file__).resolve()
    apps_dir = current_file.parents[2]
    for candidate in (current_file.parents[1], apps_dir / "suite-config", apps_dir / "fixture-data"):
        candidate_str = str(candidate)
        if candidate_str not in sys.path and candidate.exists():
            sys.path.insert(0, candidate_str)
    __package__ = "booking_api"

from fixture_data.generator import write_sample_workbook
from fixture_data.source import FixtureSourceError, TabularFixtureSource
from suite_config.logging_utils import configure_logging
from suite_config.output_config import get_log_format, get_output_format
from suite_config.settings import Credentials, ServiceEndpoint, load_environment, resolve_setting

from .clients import AuthClient, AuthError
from .http_client import TransportError
from .runner import DEFAULT_WORKERS, SuiteRunner

app = typer.Typer(help="Run the booking service CRUD lifecycle for every fixture row.")

DEFAULT_DATA_FILE = Path(__file__).resolve().parents[1] / "data" / "api-test-data.csv"
DEFAULT_WORKBOOK = DEFAULT_DATA_FILE.with_suffix(".xlsx")
DEFAULT_OUTPUT_DIR = Path("test-results") / "booking-runs"


def _default_run_id() -> str:
    return datetime.now(timezone.utc).strftime("run-%Y%m%dT%H%M%SZ")


@app.command()
def run(
    data: Optional[Path] = typer.Option(None, help="Fixture file (.xlsx, .csv, .yaml); defaults to $BOOKING_DATA_FILE."),
    base_url: Optional[str] = typer.Option(None, help="Booking service base URL; defaults to $BOOKER_BASE_URL."),
    username: Optional[str] = typer.Option(None, help="Auth username; defaults to $BOOKER_USER."),
    password: Optional[str] = typer.Option(None, help="Auth password; defaults to $BOOKER_PASS."),
    workers: int = typer.Option(DEFAULT_WORKERS, min=1, help="Scenarios executed concurrently."),
    output_dir: Path = typer.Option(DEFAULT_OUTPUT_DIR, help="Root directory for run artifacts."),
    run_id: Optional[str] = typer.Option(None, help="Run identifier used as artifact folder name."),
    output_format: Optional[str] = typer.Option(None, help="Console output: auto, rich, plain or json."),
    log_level: str = typer.Option("WARNING", envvar="LOG_LEVEL", help="Log level for structured logs."),
) -> None:
    """Execute the booking lifecycle once per fixture row."""

    load_environment()
    fmt = get_output_format(output_format)
    configure_logging(log_level, get_log_format(fmt), logger_name="booking_api")

    data_path = Path(resolve_setting(str(data) if data else None, "BOOKING_DATA_FILE", str(DEFAULT_DATA_FILE)))
    try:
        rows = TabularFixtureSource(data_path).rows()
    except FixtureSourceError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    if not rows:
        typer.secho(f"Error: no fixture rows found in {data_path}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    runner = SuiteRunner(
        endpoint=ServiceEndpoint.resolve(base_url),
        credentials=Credentials.resolve(username, password),
        output_root=output_dir,
        run_id=run_id or _default_run_id(),
        workers=workers,
        output_format=fmt,
    )
    summary = runner.run(rows)
    if fmt.value == "json":
        typer.echo(summary.model_dump_json(indent=2))
    if summary.failed:
        raise typer.Exit(code=1)


@app.command("generate-data")
def generate_data(
    output: Path = typer.Option(DEFAULT_WORKBOOK, help="Destination .xlsx workbook."),
) -> None:
    """Write a sample booking fixture workbook."""

    destination = write_sample_workbook(output)
    typer.secho(f"Wrote sample API test data to {destination}", fg=typer.colors.GREEN)


@app.command("check-auth")
def check_auth(
    base_url: Optional[str] = typer.Option(None, help="Booking service base URL; defaults to $BOOKER_BASE_URL."),
    username: Optional[str] = typer.Option(None, help="Auth username; defaults to $BOOKER_USER."),
    password: Optional[str] = typer.Option(None, help="Auth password; defaults to $BOOKER_PASS."),
) -> None:
    """Request one auth token and print the raw exchange."""

    load_environment()
    client = AuthClient(ServiceEndpoint.resolve(base_url))
    credentials = Credentials.resolve(username, password)
    try:
        response = client.http.post("/auth", json_body=credentials.as_payload())
    except TransportError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=3) from exc

    typer.echo(f"status {response.status_code}")
    typer.echo(f"headers {json.dumps(response.headers, indent=2)}")
    typer.echo(f"body {response.body}")
    payload = response.json_or_none()
    if not response.ok or not isinstance(payload, dict) or not payload.get("token"):
        typer.secho(str(AuthError(response.status_code, response.body)), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.secho("Token issued", fg=typer.colors.GREEN)


def run_cli() -> None:
    """Console_scripts hook."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run_cli()
