"""Chat message composition for run summaries."""

from __future__ import annotations

from datetime import date
from pathlib import PurePath
from typing import Any

from .models import FailureRecord, RunSummary

HEADER = "*Test Summary*"
CARD_TITLE = "Test Results"


def status_line(summary: RunSummary) -> str:
    if summary.failed == 0 and summary.total > 0:
        return f":white_check_mark: All {summary.total} tests passed"
    if summary.total == 0:
        return ":warning: No tests were run"
    return f":x: {summary.failed} failed · {summary.passed} passed · {summary.skipped} skipped"


def duration_line(summary: RunSummary) -> str:
    return f":stopwatch: Duration: {summary.duration_ms / 1000:.1f} seconds"


def date_line(today: date | None = None) -> str:
    return f":date: Date: {(today or date.today()).strftime('%Y-%m-%d')}"


def failure_line(failure: FailureRecord) -> str:
    # title and file name only; error text stays out of the chat message
    return f"• *{failure.title}* — {_basename(failure.file)}"


def summary_text(summary: RunSummary, today: date | None = None) -> str:
    """Header, status, duration and date lines."""

    return "\n".join([HEADER, status_line(summary), duration_line(summary), date_line(today)])


def chat_message(summary: RunSummary, today: date | None = None) -> str:
    """Summary text followed by up to five failing tests."""

    text = summary_text(summary, today)
    if summary.failures:
        lines = [failure_line(failure) for failure in summary.listed_failures]
        text = f"{text}\n\nTop failures:\n" + "\n".join(lines)
    return text


def screenshot_message(failure: FailureRecord, permalink: str) -> str:
    return f"Screenshot for *{failure.title}*: {permalink}"


def message_card(summary: RunSummary, today: date | None = None) -> dict[str, Any]:
    """MessageCard payload for incoming-webhook connectors."""

    text = summary_text(summary, today)
    card: dict[str, Any] = {
        "@type": "MessageCard",
        "@context": "http://schema.org/extensions",
        "summary": text,
        "title": CARD_TITLE,
        "text": text,
    }
    if summary.failures:
        card["sections"] = [
            {
                "facts": [
                    {"name": failure.title, "value": first_error_line(failure)}
                    for failure in summary.listed_failures
                ]
            }
        ]
    return card


def first_error_line(failure: FailureRecord) -> str:
    if not failure.errors:
        return ""
    return failure.errors[0].split("\n", 1)[0]


def _basename(file_path: str) -> str:
    if not file_path:
        return ""
    # node ids and windows paths both reduce to the last path component
    return PurePath(file_path.replace("\\", "/").split("::", 1)[0]).name
