"""Test bootstrap for storefront-ui."""

from __future__ import annotations

import sys
from pathlib import Path

APPS_DIR = Path(__file__).resolve().parents[2]
for package in ["storefront-ui", "fixture-data", "suite-config", "results-reporter"]:
    package_root = APPS_DIR / package
    path_str = str(package_root)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from typing import Iterator  # noqa: E402

import pytest  # noqa: E402

from storefront_ui.browser import BrowserSession, StorefrontConfig  # noqa: E402
from storefront_ui.pages import LoginPage, ProductsPage, ShoppingCartPage  # noqa: E402
from suite_config.settings import env_flag, load_environment  # noqa: E402

load_environment()


def pytest_collection_modifyitems(config, items):
    if env_flag("E2E_LIVE"):
        return
    skip_live = pytest.mark.skip(reason="set E2E_LIVE=1 to run browser tests against the storefront")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture(scope="session")
def storefront() -> StorefrontConfig:
    return StorefrontConfig.resolve()


@pytest.fixture
def page() -> Iterator:
    with BrowserSession() as browser_page:
        yield browser_page


@pytest.fixture
def login_page(page, storefront: StorefrontConfig) -> LoginPage:
    login = LoginPage(page)
    login.open(storefront.base_url)
    return login


@pytest.fixture
def products_page(page) -> ProductsPage:
    return ProductsPage(page)


@pytest.fixture
def cart_page(page) -> ShoppingCartPage:
    return ShoppingCartPage(page)


@pytest.fixture
def signed_in(login_page: LoginPage, storefront: StorefrontConfig) -> LoginPage:
    login_page.login(storefront.credentials.username, storefront.credentials.password)
    login_page.actions.wait_for_url("**/inventory.html")
    return login_page
