"""Environment-driven settings resolution.

Every value follows the same priority: explicit argument > environment
variable > hardcoded default. Clients receive a resolved ``ServiceEndpoint``
at construction time instead of reading the environment themselves.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_BOOKER_BASE_URL = "https://restful-booker.herokuapp.com"
DEFAULT_BOOKER_USER = "admin"
DEFAULT_BOOKER_PASS = "password123"
DEFAULT_TIMEOUT = 10.0
DEFAULT_STOREFRONT_BASE_URL = "https://www.saucedemo.com/"
DEFAULT_RESULTS_FILE = Path("test-results") / "results.json"

_TRUTHY = {"1", "true", "yes", "y", "on"}
_dotenv_loaded = False


def load_environment(dotenv_path: Path | None = None) -> None:
    """Load a ``.env`` file once; variables already set in the process win."""

    global _dotenv_loaded
    if _dotenv_loaded and dotenv_path is None:
        return
    load_dotenv(dotenv_path=dotenv_path, override=False)
    _dotenv_loaded = True


def resolve_setting(explicit: str | None, env_name: str, default: str | None = None) -> str | None:
    """Return the first non-empty value of ``explicit``, ``$env_name`` and ``default``."""

    if explicit:
        return explicit
    env_value = os.environ.get(env_name)
    if env_value:
        return env_value
    return default


def env_flag(env_name: str, default: bool = False) -> bool:
    value = os.environ.get(env_name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class ServiceEndpoint:
    """Base URL and timeout of a remote HTTP service."""

    base_url: str
    timeout: float = DEFAULT_TIMEOUT

    def url(self, path: str) -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.base_url}{path}"

    @classmethod
    def resolve(
        cls,
        base_url: str | None = None,
        *,
        env_name: str = "BOOKER_BASE_URL",
        default: str = DEFAULT_BOOKER_BASE_URL,
        timeout: float | None = None,
        timeout_env: str = "BOOKER_TIMEOUT",
    ) -> "ServiceEndpoint":
        resolved = resolve_setting(base_url, env_name, default) or default
        raw_timeout = os.environ.get(timeout_env, str(DEFAULT_TIMEOUT))
        try:
            env_timeout = float(raw_timeout)
        except ValueError:
            env_timeout = DEFAULT_TIMEOUT
        return cls(base_url=resolved.rstrip("/"), timeout=timeout or env_timeout)


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str

    @classmethod
    def resolve(
        cls,
        username: str | None = None,
        password: str | None = None,
        *,
        user_env: str = "BOOKER_USER",
        pass_env: str = "BOOKER_PASS",
        default_user: str = DEFAULT_BOOKER_USER,
        default_pass: str = DEFAULT_BOOKER_PASS,
    ) -> "Credentials":
        return cls(
            username=resolve_setting(username, user_env, default_user) or "",
            password=resolve_setting(password, pass_env, default_pass) or "",
        )

    def as_payload(self) -> dict[str, str]:
        return {"username": self.username, "password": self.password}


def results_file_path(explicit: str | Path | None = None) -> Path:
    value = resolve_setting(str(explicit) if explicit else None, "TEST_RESULTS_FILE")
    return Path(value) if value else DEFAULT_RESULTS_FILE
