"""
pytest integration for the results reporter.

Hook mapping:
- pytest_sessionstart         -> ResultAggregator.begin
- pytest_runtest_logreport    -> ResultAggregator.on_outcome (once per test, after teardown)
- pytest_sessionfinish        -> ResultAggregator.end (summary dispatched to chat targets)

A failing test that uses a ``page`` fixture (playwright) gets a full-page
screenshot attached to its outcome.
"""

from __future__ import annotations

import json
import re
import threading
from pathlib import Path
from typing import Any, Optional

import pytest
import structlog

from suite_config.settings import load_environment

from .aggregator import ResultAggregator
from .dispatch import NotificationDispatcher
from .models import Attachment, RunSummary, TestOutcome

LOGGER = structlog.get_logger("results_reporter")

PLUGIN_NAME = "results-reporter-session"
SCREENSHOT_PROPERTY = "screenshot"
DEFAULT_SCREENSHOT_DIR = Path("test-results") / "screenshots"


def pytest_addoption(parser):
    group = parser.getgroup("results-reporter", "Run summary notifications")
    group.addoption(
        "--results-json",
        action="store",
        dest="results_json",
        default=None,
        help="Write a JSON results document consumable by forward-results.",
    )
    group.addoption(
        "--no-notify",
        action="store_true",
        dest="no_notify",
        default=False,
        help="Aggregate results but do not post them to chat webhooks.",
    )
    group.addoption(
        "--screenshot-dir",
        action="store",
        dest="screenshot_dir",
        default=str(DEFAULT_SCREENSHOT_DIR),
        help="Directory for failure screenshots of browser tests.",
    )


def pytest_configure(config):
    # xdist workers forward their reports to the controller, which aggregates
    if hasattr(config, "workerinput"):
        return
    load_environment()
    results_json = config.getoption("results_json")
    plugin = ResultsReporterPlugin(
        dispatcher=None if config.getoption("no_notify") else NotificationDispatcher(),
        results_json=Path(results_json) if results_json else None,
        screenshot_dir=Path(config.getoption("screenshot_dir")),
    )
    config.pluginmanager.register(plugin, PLUGIN_NAME)


def pytest_unconfigure(config):
    plugin = config.pluginmanager.get_plugin(PLUGIN_NAME)
    if plugin is not None:
        config.pluginmanager.unregister(plugin, PLUGIN_NAME)


class ResultsReporterPlugin:
    """Feeds pytest reports into a ``ResultAggregator``."""

    def __init__(
        self,
        *,
        dispatcher: Optional[NotificationDispatcher] = None,
        results_json: Optional[Path] = None,
        screenshot_dir: Path = DEFAULT_SCREENSHOT_DIR,
    ) -> None:
        self.dispatcher = dispatcher
        self.results_json = results_json
        self.screenshot_dir = screenshot_dir
        self.aggregator = ResultAggregator(on_summary=dispatcher)
        self.outcomes: list[TestOutcome] = []
        self._phases: dict[str, dict[str, Any]] = {}
        self._reran: set[str] = set()
        self._lock = threading.Lock()

    def pytest_sessionstart(self, session):
        self.aggregator.begin()

    @pytest.hookimpl(hookwrapper=True)
    def pytest_runtest_makereport(self, item, call):
        outcome = yield
        report = outcome.get_result()
        if report.when not in ("setup", "call") or not report.failed:
            return
        page = item.funcargs.get("page") if hasattr(item, "funcargs") else None
        if page is None:
            return
        path = self._capture_screenshot(page, item.nodeid)
        if path is not None:
            report.user_properties.append((SCREENSHOT_PROPERTY, str(path)))

    def pytest_runtest_logreport(self, report):
        if report.outcome == "rerun":
            with self._lock:
                self._reran.add(report.nodeid)
                self._phases[report.nodeid] = {"rerun": report}
            return
        with self._lock:
            phases = self._phases.setdefault(report.nodeid, {})
            if "rerun" in phases:
                # remaining phases of an attempt that will be retried
                if report.when == "teardown":
                    self._phases.pop(report.nodeid, None)
                return
            phases[report.when] = report
            if report.when != "teardown":
                return
            self._phases.pop(report.nodeid, None)
            reran = report.nodeid in self._reran
        outcome = outcome_from_reports(phases, reran=reran)
        with self._lock:
            self.outcomes.append(outcome)
        self.aggregator.on_outcome(outcome)

    def pytest_sessionfinish(self, session, exitstatus):
        if exitstatus == pytest.ExitCode.INTERRUPTED:
            LOGGER.warning("run_cancelled", discarded_outcomes=len(self.outcomes))
            return
        summary = self.aggregator.end()
        if self.results_json is not None:
            write_results_json(self.results_json, summary, self.outcomes)

    def _capture_screenshot(self, page: Any, nodeid: str) -> Optional[Path]:
        target = self.screenshot_dir / f"{_slug(nodeid)}.png"
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            page.screenshot(path=str(target), full_page=True)
        except Exception as exc:
            LOGGER.warning("screenshot_failed", nodeid=nodeid, error=str(exc))
            return None
        return target


def outcome_from_reports(phases: dict[str, Any], *, reran: bool = False) -> TestOutcome:
    """Collapse setup/call/teardown reports of one test into a single outcome."""

    setup = phases.get("setup")
    call = phases.get("call")
    teardown = phases.get("teardown")
    primary = call or setup or teardown

    if setup is not None and setup.failed:
        status, failing = "failed", setup
    elif setup is not None and setup.skipped:
        status, failing = "skipped", None
    elif call is not None and call.failed:
        status, failing = "failed", call
    elif call is not None and call.skipped:
        status, failing = "skipped", None
    elif teardown is not None and teardown.failed:
        status, failing = "failed", teardown
    else:
        status, failing = ("flaky" if reran else "passed"), None

    attachments = [
        Attachment(name=SCREENSHOT_PROPERTY, path=str(value))
        for report in (setup, call, teardown)
        if report is not None
        for key, value in getattr(report, "user_properties", [])
        if key == SCREENSHOT_PROPERTY
    ]
    duration = sum(getattr(report, "duration", 0.0) or 0.0 for report in (setup, call, teardown) if report is not None)
    return TestOutcome(
        title=_title(primary.nodeid),
        status=status,
        file=primary.location[0] if getattr(primary, "location", None) else primary.nodeid.split("::", 1)[0],
        error_messages=_error_messages(failing) if failing is not None else [],
        attachments=attachments,
        duration_ms=round(duration * 1000, 3),
    )


def write_results_json(path: Path, summary: RunSummary, outcomes: list[TestOutcome]) -> Path:
    document = {
        "duration": summary.duration_ms,
        "stats": {
            "total": summary.total,
            "passed": summary.passed,
            "failed": summary.failed,
            "skipped": summary.skipped,
            "flaky": summary.flaky,
        },
        "tests": [
            {
                "title": outcome.title,
                "file": outcome.file,
                "status": outcome.status,
                "ok": _ok_flag(outcome.status),
                "errors": outcome.error_messages,
                "attachments": [attachment.model_dump() for attachment in outcome.attachments],
                "duration": outcome.duration_ms,
            }
            for outcome in outcomes
        ],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    LOGGER.info("results_written", path=str(path), tests=len(outcomes))
    return path


def _ok_flag(status: str) -> Optional[bool]:
    if status in ("passed", "flaky"):
        return True
    if status == "failed":
        return False
    return None


def _title(nodeid: str) -> str:
    return nodeid.split("::", 1)[-1] if "::" in nodeid else nodeid


def _error_messages(report: Any) -> list[str]:
    longrepr = getattr(report, "longrepr", None)
    crash = getattr(longrepr, "reprcrash", None)
    message = getattr(crash, "message", None)
    if message:
        return [message]
    text = getattr(report, "longreprtext", "") or (str(longrepr) if longrepr else "")
    return [text] if text else []


def _slug(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", value).strip("_") or "test"
