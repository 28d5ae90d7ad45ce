"""Progress output for standalone suite runs.

A live rich table is used in interactive terminals; CI logs, pipes and
redirects get one plain line per scenario. ``json`` output keeps stdout free
for the machine-readable summary.
"""

from typing import Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeRemainingColumn
from rich.table import Table
from rich.text import Text

from suite_config.output_config import OutputFormat, is_interactive_terminal

RULE = "-" * 80


def _verdict(failed: int) -> str:
    return "✓ ALL SCENARIOS PASSED" if failed == 0 else "✗ SOME SCENARIOS FAILED"


class _PlainView:
    def start(self, total: int, base_url: str) -> None:
        print(f"Running {total} booking scenario(s) against {base_url}")
        print(RULE)

    def scenario(self, row_index: int, title: str, passed: bool, duration_ms: float, error: Optional[str]) -> None:
        print(f"[{row_index}] {title} ... {'✓ PASS' if passed else '✗ FAIL'} ({duration_ms:.0f}ms)")
        if error and not passed:
            print(f"  Error: {error}")

    def finish(self, total: int, passed: int, failed: int, duration_ms: float) -> None:
        print(RULE)
        print(f"Total: {total} | Passed: {passed} | Failed: {failed} | Duration: {duration_ms:.0f}ms")
        print(_verdict(failed))


class _RichView:
    def __init__(self) -> None:
        self.console = Console()
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeRemainingColumn(),
            console=self.console,
        )
        self.table = Table(show_header=True, header_style="bold cyan")
        for name, kwargs in (
            ("Row", {"style": "dim", "width": 6}),
            ("Scenario", {"width": 44}),
            ("Status", {"width": 10}),
            ("Duration", {"justify": "right", "width": 12}),
        ):
            self.table.add_column(name, **kwargs)
        self.task = None
        self.live: Optional[Live] = None

    def start(self, total: int, base_url: str) -> None:
        self.task = self.progress.add_task(f"[cyan]Booking lifecycle against {base_url}", total=total)
        self.live = Live(Group(self.progress, self.table), console=self.console, refresh_per_second=4)
        self.live.start()

    def scenario(self, row_index: int, title: str, passed: bool, duration_ms: float, error: Optional[str]) -> None:
        status = Text("✓ PASS" if passed else "✗ FAIL", style="green" if passed else "red")
        self.table.add_row(str(row_index), title, status, f"{duration_ms:.0f}ms")
        if error and not passed:
            self.table.add_row("", Text(f"Error: {error}", style="red"), "", "")
        if self.task is not None:
            self.progress.update(self.task, advance=1)

    def finish(self, total: int, passed: int, failed: int, duration_ms: float) -> None:
        if self.live is not None:
            self.live.stop()
        colour = "green" if failed == 0 else "red"
        counts = Text.assemble(
            (f"Total: {total}  ", "bold"),
            (f"Passed: {passed}  ", "bold green"),
            (f"Failed: {failed}  ", f"bold {colour}"),
            (f"Duration: {duration_ms:.0f}ms", "bold cyan"),
        )
        self.console.print()
        self.console.print(Panel(counts, title=Text(_verdict(failed), style=f"bold {colour}"), border_style=colour))


class ConsoleReporter:
    """Scenario progress reporter that adapts to the output format and terminal."""

    def __init__(self, output_format: OutputFormat = OutputFormat.AUTO):
        self.output_format = output_format
        self.quiet = output_format == OutputFormat.JSON
        if output_format == OutputFormat.RICH:
            self.use_rich = True
        elif output_format == OutputFormat.AUTO:
            self.use_rich = is_interactive_terminal()
        else:
            self.use_rich = False
        self._view = _RichView() if self.use_rich else _PlainView()

    def start_suite(self, total_scenarios: int, base_url: str) -> None:
        if not self.quiet:
            self._view.start(total_scenarios, base_url)

    def report_scenario_result(
        self,
        row_index: int,
        title: str,
        passed: bool,
        duration_ms: float,
        error_msg: Optional[str] = None,
    ) -> None:
        if not self.quiet:
            self._view.scenario(row_index, title, passed, duration_ms, error_msg)

    def finish_suite(self, total: int, passed: int, failed: int, duration_ms: float) -> None:
        if not self.quiet:
            self._view.finish(total, passed, failed, duration_ms)
