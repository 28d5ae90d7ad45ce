from __future__ import annotations

import threading
from pathlib import Path

import pytest
from pydantic import ValidationError

from results_reporter.aggregator import ResultAggregator
from results_reporter.models import Attachment, RunSummary, TestOutcome


class FakeClock:
    def __init__(self, *values: float) -> None:
        self._values = list(values)

    def __call__(self) -> float:
        return self._values.pop(0)


def _outcome(title: str, status: str, **kwargs) -> TestOutcome:
    return TestOutcome(title=title, status=status, file=f"tests/{title}.py", **kwargs)


def test_counts_every_status() -> None:
    aggregator = ResultAggregator(clock=FakeClock(100.0, 112.3456))
    aggregator.begin()
    for outcome in [
        _outcome("a", "passed"),
        _outcome("b", "failed", error_messages=["AssertionError: boom"]),
        _outcome("c", "skipped"),
        _outcome("d", "flaky"),
        _outcome("e", "passed"),
    ]:
        aggregator.on_outcome(outcome)

    summary = aggregator.end()

    assert (summary.total, summary.passed, summary.failed, summary.skipped, summary.flaky) == (5, 2, 1, 1, 1)
    assert summary.duration_ms == 12346
    assert [failure.title for failure in summary.failures] == ["b"]
    assert summary.failures[0].errors == ["AssertionError: boom"]


def test_empty_run_produces_zero_summary() -> None:
    aggregator = ResultAggregator()
    aggregator.begin()

    summary = aggregator.end()

    assert summary.total == 0
    assert summary.failures == ()


def test_failures_keep_arrival_order_and_existing_attachments_only(tmp_path: Path) -> None:
    screenshot = tmp_path / "shot.png"
    screenshot.write_bytes(b"png")
    aggregator = ResultAggregator()
    aggregator.begin()
    aggregator.on_outcome(
        _outcome(
            "first",
            "failed",
            attachments=[
                Attachment(name="screenshot", path=str(screenshot)),
                Attachment(name="screenshot", path=str(tmp_path / "gone.png")),
            ],
        )
    )
    aggregator.on_outcome(_outcome("second", "failed"))

    summary = aggregator.end()

    assert [failure.title for failure in summary.failures] == ["first", "second"]
    assert [attachment.path for attachment in summary.failures[0].attachments] == [str(screenshot)]


def test_concurrent_outcomes_are_all_counted() -> None:
    aggregator = ResultAggregator()
    aggregator.begin()
    statuses = ["passed", "failed", "skipped", "flaky"]

    def worker(offset: int) -> None:
        for index in range(250):
            aggregator.on_outcome(_outcome(f"t{offset}-{index}", statuses[(offset + index) % 4]))

    threads = [threading.Thread(target=worker, args=(offset,)) for offset in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    summary = aggregator.end()

    assert summary.total == 2000
    assert summary.passed + summary.failed + summary.skipped + summary.flaky == 2000
    assert len(summary.failures) == summary.failed == 500


def test_end_is_idempotent_and_notifies_once() -> None:
    received: list[RunSummary] = []
    aggregator = ResultAggregator(on_summary=received.append)
    aggregator.begin()
    aggregator.on_outcome(_outcome("a", "passed"))

    first = aggregator.end()
    second = aggregator.end()

    assert first is second
    assert received == [first]
    with pytest.raises(RuntimeError):
        aggregator.on_outcome(_outcome("late", "passed"))


def test_listener_errors_do_not_escape() -> None:
    def explode(summary: RunSummary) -> None:
        raise ConnectionError("webhook down")

    aggregator = ResultAggregator(on_summary=explode)
    aggregator.begin()

    assert aggregator.end().total == 0


def test_summary_rejects_inconsistent_totals() -> None:
    with pytest.raises(ValidationError):
        RunSummary(total=3, passed=1, failed=1)
