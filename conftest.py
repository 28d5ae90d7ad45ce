"""Repository-wide pytest bootstrap: app import paths and the results reporter plugin."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
import structlog

APPS_DIR = Path(__file__).resolve().parent / "apps"
for package in ["suite-config", "fixture-data", "booking-api", "results-reporter", "storefront-ui"]:
    package_root = APPS_DIR / package
    path_str = str(package_root)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

pytest_plugins = ["results_reporter.plugin"]


@pytest.fixture(autouse=True)
def _reset_structlog():
    # CLI tests configure structlog against CliRunner's temporary streams
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()
