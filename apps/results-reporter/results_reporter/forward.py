"""Forward a results JSON document to an automation webhook.

Exit codes: 0 delivered, 1 bad input (missing URL/file, unparseable JSON),
2 webhook answered non-2xx, 3 transport error.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Optional

import httpx
import structlog
import typer

if __package__ in {None, ""}:
    current_file = Path(__file__).resolve()
    for candidate in (current_file.parents[1], current_file.parents[2] / "suite-config"):
        candidate_str = str(candidate)
        if candidate_str not in sys.path and candidate.exists():
            sys.path.insert(0, candidate_str)
    __package__ = "results_reporter"

from suite_config.logging_utils import configure_logging
from suite_config.settings import load_environment, resolve_setting, results_file_path

EXIT_INPUT = 1
EXIT_REJECTED = 2
EXIT_TRANSPORT = 3
DEFAULT_TIMEOUT = 30.0

LOGGER = structlog.get_logger("results_reporter")

app = typer.Typer(help="Send a test results document to an automation webhook.", add_completion=False)


class ResultsParseError(ValueError):
    """The results file holds no recoverable JSON document."""


def parse_results(path: Path) -> tuple[Any, Optional[Path]]:
    """
    Parse ``path`` as JSON.

    When the file carries log noise around the document, the substring from the
    first ``{``/``[`` to the last ``}``/``]`` is parsed instead and a
    ``<name>.clean.json`` copy is written next to the original. Returns the
    document and the cleaned copy path (``None`` when no recovery was needed).
    """

    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeError) as exc:
        raise ResultsParseError(f"Cannot read {path}: {exc}") from exc
    try:
        return json.loads(raw), None
    except json.JSONDecodeError as original:
        starts = [index for index in (raw.find("{"), raw.find("[")) if index != -1]
        end = max(raw.rfind("}"), raw.rfind("]"))
        if not starts or end <= min(starts):
            raise ResultsParseError(f"No JSON document found in {path}: {original}") from original
        candidate = raw[min(starts) : end + 1]
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as exc:
            raise ResultsParseError(f"Failed to parse JSON from {path}: {original}; recovery attempt: {exc}") from exc

    base_name = path.stem if path.suffix == ".json" else path.name
    cleaned = path.with_name(f"{base_name}.clean.json")
    try:
        cleaned.write_text(json.dumps(data, indent=2), encoding="utf-8")
    except OSError as exc:
        LOGGER.warning("clean_copy_not_written", path=str(cleaned), error=str(exc))
        return data, None
    return data, cleaned


def collect_tests(node: Any) -> list[dict[str, Any]]:
    """Flatten nested ``suites``/``specs``/``tests`` containers into one list of tests."""

    if not isinstance(node, dict):
        return []
    tests: list[dict[str, Any]] = [test for test in node.get("tests") or [] if isinstance(test, dict)]
    for spec in node.get("specs") or []:
        if isinstance(spec, dict):
            tests.extend(test for test in spec.get("tests") or [] if isinstance(test, dict))
    for suite in node.get("suites") or []:
        tests.extend(collect_tests(suite))
    return tests


def summarize(document: Any) -> dict[str, Any]:
    if isinstance(document, dict) and isinstance(document.get("suites"), list):
        tests = [test for suite in document["suites"] for test in collect_tests(suite)]
    elif isinstance(document, dict) and isinstance(document.get("tests"), list):
        tests = [test for test in document["tests"] if isinstance(test, dict)]
    else:
        tests = []

    summary = {"total": len(tests), "passed": 0, "failed": 0, "skipped": 0, "duration": 0}
    if isinstance(document, dict):
        summary["duration"] = document.get("duration") or 0
    for test in tests:
        ok = test.get("ok")
        if ok is True:
            summary["passed"] += 1
        elif ok is False:
            summary["failed"] += 1
        else:
            summary["skipped"] += 1
    return summary


def build_payload(document: Any) -> dict[str, Any]:
    return {"summary": summarize(document), "results": document}


@app.command()
def forward(
    url: Optional[str] = typer.Option(None, "--url", help="Webhook URL; defaults to $N8N_WEBHOOK_URL."),
    file: Optional[Path] = typer.Option(None, "--file", help="Results JSON; defaults to $TEST_RESULTS_FILE."),
    timeout: float = typer.Option(DEFAULT_TIMEOUT, help="HTTP timeout in seconds."),
    log_level: str = typer.Option("WARNING", envvar="LOG_LEVEL", help="Log level for structured logs."),
) -> None:
    """Post ``{summary, results}`` for a results file to the webhook."""

    load_environment()
    logger = configure_logging(log_level, "console", logger_name="results_reporter")

    webhook_url = resolve_setting(url, "N8N_WEBHOOK_URL")
    if not webhook_url:
        typer.secho("Error: missing webhook URL. Set N8N_WEBHOOK_URL or pass --url <webhook>", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_INPUT)

    results_file = results_file_path(str(file) if file else None)
    if not results_file.is_file():
        typer.secho(f"Error: results file not found: {results_file}", fg=typer.colors.RED, err=True)
        typer.echo("Tip: run the suite with `pytest --results-json <file>` first", err=True)
        raise typer.Exit(code=EXIT_INPUT)

    try:
        document, cleaned = parse_results(results_file)
    except ResultsParseError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_INPUT) from exc
    if cleaned is not None:
        typer.secho(
            f"Warning: results file contained non-JSON leading/trailing data. A cleaned copy was written to {cleaned}",
            fg=typer.colors.YELLOW,
            err=True,
        )

    payload = build_payload(document)
    logger.info("results_forwarding", url=webhook_url, **payload["summary"])
    try:
        response = httpx.post(webhook_url, json=payload, timeout=timeout)
    except httpx.HTTPError as exc:
        typer.secho(f"Failed to send to webhook: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_TRANSPORT) from exc

    if not response.is_success:
        typer.secho(f"Webhook returned {response.status_code} {response.text}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_REJECTED)
    typer.secho("Results sent successfully", fg=typer.colors.GREEN)


def run() -> None:
    """Console_scripts hook."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()
