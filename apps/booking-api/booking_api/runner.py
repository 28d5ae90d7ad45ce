"""Standalone execution of the data-driven booking suite."""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from xml.etree import ElementTree

import structlog

from fixture_data.source import FixtureRow
from suite_config.output_config import OutputFormat
from suite_config.settings import Credentials, ServiceEndpoint

from .console_reporter import ConsoleReporter
from .models import ScenarioResult, SuiteResult
from .scenario import BookingScenario, BookingServices

LOGGER = structlog.get_logger("booking_api")

DEFAULT_WORKERS = 4


@dataclass(frozen=True)
class RunArtifacts:
    """Files of one run, all below ``<output_root>/<run_id>/``."""

    run_dir: Path

    @classmethod
    def create(cls, output_root: Path, run_id: str) -> "RunArtifacts":
        run_dir = output_root / run_id
        run_dir.mkdir(parents=True, exist_ok=True)
        return cls(run_dir)

    @property
    def events_file(self) -> Path:
        return self.run_dir / "events.jsonl"

    @property
    def summary_file(self) -> Path:
        return self.run_dir / "summary.json"

    @property
    def junit_file(self) -> Path:
        return self.run_dir / "results.junit.xml"


class SuiteRunner:
    """Runs one booking scenario per fixture row and records artifacts."""

    def __init__(
        self,
        *,
        endpoint: ServiceEndpoint,
        credentials: Credentials,
        output_root: Path,
        run_id: str,
        workers: int = DEFAULT_WORKERS,
        output_format: OutputFormat = OutputFormat.AUTO,
    ) -> None:
        self.endpoint = endpoint
        self.credentials = credentials
        self.output_root = output_root
        self.run_id = run_id
        self.workers = max(1, workers)
        self._reporter = ConsoleReporter(output_format=output_format)

    def run(self, rows: list[FixtureRow]) -> SuiteResult:
        artifacts = RunArtifacts.create(self.output_root, self.run_id)
        begun = datetime.now(timezone.utc)
        results: list[ScenarioResult] = []
        logger = LOGGER.bind(run_id=self.run_id, base_url=self.endpoint.base_url)
        logger.info("suite_started", scenarios=len(rows), workers=self.workers)

        self._reporter.start_suite(total_scenarios=len(rows), base_url=self.endpoint.base_url)
        with artifacts.events_file.open("w", encoding="utf-8") as events_handle:
            with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="booking-row") as pool:
                futures = [
                    pool.submit(self._run_row, row, index)
                    for index, row in enumerate(rows, start=1)
                ]
                for future in as_completed(futures):
                    result = future.result()
                    results.append(result)
                    events_handle.write(result.model_dump_json() + "\n")
                    self._reporter.report_scenario_result(
                        row_index=result.row_index,
                        title=result.title,
                        passed=result.passed,
                        duration_ms=result.duration_ms,
                        error_msg=result.error,
                    )

        results.sort(key=lambda item: item.row_index)
        suite_result = self._suite_result(begun, datetime.now(timezone.utc), results, artifacts)
        artifacts.summary_file.write_text(suite_result.model_dump_json(indent=2), encoding="utf-8")
        write_junit(results, artifacts.junit_file)

        self._reporter.finish_suite(
            total=suite_result.total,
            passed=suite_result.passed,
            failed=suite_result.failed,
            duration_ms=suite_result.duration_ms,
        )
        logger.info(
            "suite_finished",
            passed=suite_result.passed,
            failed=suite_result.failed,
            duration_ms=suite_result.duration_ms,
        )
        return suite_result

    def _run_row(self, row: FixtureRow, index: int) -> ScenarioResult:
        # fresh clients and context per row
        scenario = BookingScenario(BookingServices.for_endpoint(self.endpoint), self.credentials)
        return scenario.execute(row, row_index=index)

    def _suite_result(
        self,
        begun: datetime,
        ended: datetime,
        results: list[ScenarioResult],
        artifacts: RunArtifacts,
    ) -> SuiteResult:
        failed = sum(1 for result in results if not result.passed)
        return SuiteResult(
            run_id=self.run_id,
            base_url=self.endpoint.base_url,
            started_at=begun,
            finished_at=ended,
            duration_ms=round((ended - begun).total_seconds() * 1000, 3),
            total=len(results),
            passed=len(results) - failed,
            failed=failed,
            scenarios=results,
            events_file=str(artifacts.events_file),
            summary_file=str(artifacts.summary_file),
            junit_file=str(artifacts.junit_file),
        )


def write_junit(results: list[ScenarioResult], junit_file: Path) -> None:
    """One ``testcase`` per row; failures carry the step results as JSON."""

    failures = [result for result in results if not result.passed]
    root = ElementTree.Element("testsuite", name="booking-api-e2e", tests=str(len(results)), failures=str(len(failures)))
    for result in results:
        case = ElementTree.SubElement(
            root,
            "testcase",
            classname="booking_api.scenario",
            name=result.title,
            time=f"{result.duration_ms / 1000:.3f}",
        )
        if result.passed:
            continue
        failure = ElementTree.SubElement(
            case,
            "failure",
            message=result.error or "Scenario failed",
            type=result.error_type or "failure",
        )
        failure.text = json.dumps([step.model_dump(mode="json") for step in result.steps], indent=2)
    ElementTree.ElementTree(root).write(junit_file, encoding="utf-8", xml_declaration=True)
