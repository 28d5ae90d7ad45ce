"""Console output format shared by the suite CLIs and the run reporter."""

import os
import sys
from enum import Enum
from typing import Literal, Optional


class OutputFormat(str, Enum):
    AUTO = "auto"
    RICH = "rich"
    PLAIN = "plain"
    JSON = "json"


LogFormat = Literal["json", "console", "plain"]

ENV_VAR_NAME = "CONSOLE_OUTPUT_FORMAT"
CI_ENV_MARKERS = ("CI", "GITHUB_ACTIONS", "JENKINS_HOME", "GITLAB_CI", "TRAVIS")

_LOG_FORMATS: dict[OutputFormat, LogFormat] = {
    OutputFormat.JSON: "json",
    OutputFormat.PLAIN: "plain",
}


def _parse(value: Optional[str]) -> Optional[OutputFormat]:
    if not value:
        return None
    try:
        return OutputFormat(value.strip().lower())
    except ValueError:
        return None


def get_output_format(cli_override: Optional[str] = None) -> OutputFormat:
    """First valid value of the CLI option and ``$CONSOLE_OUTPUT_FORMAT``; ``auto`` otherwise.

    Unknown names are ignored rather than rejected so a typo in the
    environment never stops a run.
    """
    return _parse(cli_override) or _parse(os.environ.get(ENV_VAR_NAME)) or OutputFormat.AUTO


def get_log_format(output_format: Optional[OutputFormat] = None) -> LogFormat:
    """json -> JSON lines, plain -> uncoloured text, auto/rich -> coloured console."""
    return _LOG_FORMATS.get(output_format or get_output_format(), "console")


def is_interactive_terminal() -> bool:
    """stdout is a TTY and no CI marker variable is set."""
    if any(name in os.environ for name in CI_ENV_MARKERS):
        return False
    return sys.stdout.isatty()
