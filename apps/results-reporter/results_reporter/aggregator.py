"""Per-run aggregation of test outcomes."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable, Optional

import structlog

from .models import Attachment, FailureRecord, RunSummary, TestOutcome

LOGGER = structlog.get_logger("results_reporter")

SummaryListener = Callable[[RunSummary], object]


class ResultAggregator:
    """
    Observer with three events over one run: ``begin``, ``on_outcome`` and ``end``.

    ``on_outcome`` may be called concurrently from several workers; counter
    updates and failure appends happen under a single lock. ``end`` freezes the
    ``RunSummary`` and hands it to the listener (normally the notification
    dispatcher); nothing the listener raises reaches the caller.
    """

    def __init__(
        self,
        on_summary: Optional[SummaryListener] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._on_summary = on_summary
        self._clock = clock
        self._lock = threading.Lock()
        self._started_at: float | None = None
        self._counts = {"passed": 0, "failed": 0, "skipped": 0, "flaky": 0}
        self._failures: list[FailureRecord] = []
        self._summary: RunSummary | None = None

    @property
    def summary(self) -> RunSummary | None:
        return self._summary

    def begin(self) -> None:
        with self._lock:
            self._started_at = self._clock()
        LOGGER.debug("run_collecting")

    def on_outcome(self, outcome: TestOutcome) -> None:
        failure = _failure_record(outcome) if outcome.status == "failed" else None
        with self._lock:
            if self._summary is not None:
                raise RuntimeError("Run already finished; outcomes can no longer be recorded")
            self._counts[outcome.status] += 1
            if failure is not None:
                self._failures.append(failure)

    def end(self) -> RunSummary:
        with self._lock:
            if self._summary is not None:
                return self._summary
            started = self._started_at if self._started_at is not None else self._clock()
            duration_ms = max(0, int(round((self._clock() - started) * 1000)))
            total = sum(self._counts.values())
            self._summary = RunSummary(
                total=total,
                duration_ms=duration_ms,
                failures=tuple(self._failures),
                **self._counts,
            )
            summary = self._summary

        LOGGER.info(
            "run_finished",
            total=summary.total,
            passed=summary.passed,
            failed=summary.failed,
            skipped=summary.skipped,
            flaky=summary.flaky,
            duration_ms=summary.duration_ms,
        )
        if self._on_summary is not None:
            try:
                self._on_summary(summary)
            except Exception:
                LOGGER.exception("summary_listener_failed")
        return summary


def _failure_record(outcome: TestOutcome) -> FailureRecord:
    kept: list[Attachment] = []
    for attachment in outcome.attachments:
        if attachment.path and Path(attachment.path).is_file():
            kept.append(attachment)
        else:
            LOGGER.debug("attachment_missing", title=outcome.title, path=attachment.path)
    return FailureRecord(
        title=outcome.title,
        file=outcome.file,
        errors=list(outcome.error_messages),
        attachments=kept,
    )
