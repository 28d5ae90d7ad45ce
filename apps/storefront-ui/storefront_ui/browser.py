"""Chromium session management for the storefront tests."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Optional

import structlog
from playwright.sync_api import Browser, BrowserContext, Page, Playwright, sync_playwright

from fixture_data.source import FixtureSourceError, TabularFixtureSource
from suite_config.settings import (
    DEFAULT_STOREFRONT_BASE_URL,
    Credentials,
    env_flag,
    resolve_setting,
)

LOGGER = structlog.get_logger("storefront_ui")

DEFAULT_DATA_FILE = Path(__file__).resolve().parents[1] / "data" / "credentials.csv"
DEFAULT_TIMEOUT_MS = 10_000


@dataclass(frozen=True)
class StorefrontConfig:
    base_url: str
    credentials: Credentials

    @classmethod
    def resolve(cls, data_file: Optional[Path] = None) -> "StorefrontConfig":
        """Row 0 of the credentials fixture, falling back to the environment."""

        path = Path(resolve_setting(str(data_file) if data_file else None, "STOREFRONT_DATA_FILE", str(DEFAULT_DATA_FILE)))
        base_url: Optional[str] = None
        username: Optional[str] = None
        password: Optional[str] = None
        try:
            source = TabularFixtureSource(path)
            if len(source):
                base_url = source.base_url(0) or None
                row_credentials = source.credentials(0)
                username = row_credentials.username or None
                password = row_credentials.password or None
        except FixtureSourceError as exc:
            LOGGER.warning("storefront_fixture_unavailable", path=str(path), error=str(exc))
        return cls(
            base_url=resolve_setting(base_url, "STOREFRONT_BASE_URL", DEFAULT_STOREFRONT_BASE_URL),
            credentials=Credentials.resolve(
                username,
                password,
                user_env="STOREFRONT_USER",
                pass_env="STOREFRONT_PASS",
                default_user="standard_user",
                default_pass="secret_sauce",
            ),
        )


class BrowserSession:
    """Context manager yielding a fresh ``Page``; resources are released in reverse order."""

    def __init__(self, *, headless: Optional[bool] = None, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
        self.headless = env_flag("STOREFRONT_HEADLESS", default=True) if headless is None else headless
        self.timeout_ms = timeout_ms
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    def __enter__(self) -> Page:
        LOGGER.debug("browser_launching", headless=self.headless)
        self._playwright = sync_playwright().start()
        try:
            self._browser = self._playwright.chromium.launch(headless=self.headless)
            self._context = self._browser.new_context()
            self._context.set_default_timeout(self.timeout_ms)
            return self._context.new_page()
        except Exception:
            self.close()
            raise

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> bool:
        self.close()
        return False

    def close(self) -> None:
        if self._context is not None:
            self._context.close()
            self._context = None
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None
        LOGGER.debug("browser_closed")
