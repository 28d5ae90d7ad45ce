"""Post a test message to a chat webhook to verify connectivity."""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import httpx
import typer

if __package__ in {None, ""}:
    current_file = Path(__file__).resolve()
    for candidate in (current_file.parents[1], current_file.parents[2] / "suite-config"):
        candidate_str = str(candidate)
        if candidate_str not in sys.path and candidate.exists():
            sys.path.insert(0, candidate_str)
    __package__ = "results_reporter"

from suite_config.settings import load_environment, resolve_setting

app = typer.Typer(help="Verify a Slack incoming webhook.", add_completion=False)


def connectivity_message(now: Optional[datetime] = None) -> dict[str, str]:
    stamp = (now or datetime.now(timezone.utc)).isoformat()
    return {"text": f":test_tube: Slack Webhook Test\n:white_check_mark: Connection successful!\n:stopwatch: Test time: {stamp}"}


@app.command()
def check(
    url: Optional[str] = typer.Argument(None, help="Webhook URL; defaults to $SLACK_WEBHOOK_URL."),
    timeout: float = typer.Option(10.0, help="HTTP timeout in seconds."),
) -> None:
    """Send one test message and report the webhook's answer."""

    load_environment()
    webhook_url = resolve_setting(url, "SLACK_WEBHOOK_URL")
    if not webhook_url:
        typer.secho("Error: no Slack webhook URL provided", fg=typer.colors.RED, err=True)
        typer.echo("Usage: check-slack-webhook <webhook-url>  (or set SLACK_WEBHOOK_URL)", err=True)
        raise typer.Exit(code=1)

    message = connectivity_message()
    typer.echo("Testing Slack webhook...")
    typer.echo(f"URL: {webhook_url[:50]}...")
    typer.echo(f"Message: {json.dumps(message, indent=2)}")
    try:
        response = httpx.post(webhook_url, json=message, timeout=timeout)
    except httpx.HTTPError as exc:
        typer.secho(f"Failed to post to Slack: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    if not response.is_success:
        typer.secho(f"Failed to post to Slack: HTTP {response.status_code}: {response.text}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.secho(f"Success! Response: {response.text}", fg=typer.colors.GREEN)


def run() -> None:
    """Console_scripts hook."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()
