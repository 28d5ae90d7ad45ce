"""structlog setup shared by the suite CLIs.

Log lines go to stderr so that stdout stays free for the console reporter
and for JSON summaries.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable

import structlog
from rich.console import Console
from rich.text import Text

from .output_config import LogFormat

EVENT_COLUMN_WIDTH = 32
HIDDEN_KEYS = frozenset({"color_message", "stack"})

LEVEL_STYLES = {
    "debug": "dim cyan",
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "critical": "bold white on red",
}


class RichConsoleRenderer:
    """Renders ``timestamp [level] event key=value ...`` with ANSI colours."""

    def __init__(self, width: int = 200) -> None:
        self._console = Console(force_terminal=True, width=width, legacy_windows=False)

    def __call__(self, logger: Any, name: str, event_dict: dict[str, Any]) -> str:
        timestamp = event_dict.pop("timestamp", "")
        level = event_dict.pop("level", "info")
        event = str(event_dict.pop("event", ""))
        exception = event_dict.pop("exception", None)

        line = Text.assemble(
            (timestamp, "dim white"),
            " ",
            (f"[{level:<8}]", LEVEL_STYLES.get(level, "white")),
            " ",
            (event.ljust(EVENT_COLUMN_WIDTH) if event_dict else event, "bold white"),
        )
        pairs = [(key, value) for key, value in sorted(event_dict.items()) if key not in HIDDEN_KEYS]
        for position, (key, value) in enumerate(pairs):
            if position:
                line.append(" ")
            line.append(f"{key}=", style="dim white")
            line.append(str(value), style="bright_cyan")
        if exception:
            line.append(f"\n{exception}", style="red")

        with self._console.capture() as capture:
            self._console.print(line, end="")
        return capture.get()


def _final_processor(log_format: LogFormat) -> Callable[..., Any]:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    if log_format == "plain":
        return structlog.dev.ConsoleRenderer(colors=False)
    return RichConsoleRenderer()


def configure_logging(
    log_level: str = "INFO",
    log_format: LogFormat = "console",
    logger_name: str = "suite",
) -> structlog.stdlib.BoundLogger:
    """Route structlog through stdlib logging at ``log_level`` and return a named logger."""

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, stream=sys.stderr, format="%(message)s", force=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            structlog.processors.format_exc_info,
            _final_processor(log_format),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        # loggers are module globals; resolving config per call keeps reconfiguration effective
        cache_logger_on_first_use=False,
    )
    return structlog.get_logger(logger_name)
