"""Page objects for the demo storefront.

Each page owns a ``PageActions`` helper instead of inheriting from a base page;
locators are plain ``playwright`` locators exposed as attributes so tests can
assert on them directly.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Literal, Sequence

from playwright.sync_api import Locator, Page

SortOption = Literal["az", "za", "lohi", "hilo"]

DEFAULT_WAIT_MS = 5000
INVENTORY_URL = "**/inventory.html"
CART_URL = "**/cart.html"


def parse_price(text: str) -> float:
    """``"$29.99"`` -> ``29.99``."""

    return float(text.strip().lstrip("$").replace(",", ""))


def is_sorted_by_name(names: Sequence[str], *, descending: bool = False) -> bool:
    expected = sorted(names, key=str.casefold, reverse=descending)
    return list(names) == expected


def is_sorted_by_price(prices: Sequence[float], *, descending: bool = False) -> bool:
    pairs = zip(prices, prices[1:])
    if descending:
        return all(left >= right for left, right in pairs)
    return all(left <= right for left, right in pairs)


def product_button_id(product_name: str) -> str:
    """``"Backpack"`` -> ``"add-to-cart-sauce-labs-backpack"``."""

    slug = re.sub(r"\s+", "-", product_name.strip().lower())
    return f"add-to-cart-sauce-labs-{slug}"


class PageActions:
    """Thin wrapper around a playwright ``Page`` shared by all page objects."""

    def __init__(self, page: Page) -> None:
        self.page = page

    def goto(self, url: str) -> None:
        self.page.goto(url)
        self.page.wait_for_load_state("domcontentloaded")

    def fill(self, locator: Locator, text: str) -> None:
        locator.fill(text)

    def click(self, locator: Locator) -> None:
        locator.click()

    def text(self, locator: Locator) -> str:
        return locator.text_content() or ""

    def is_visible(self, locator: Locator) -> bool:
        return locator.is_visible()

    def wait_visible(self, locator: Locator, timeout_ms: int = DEFAULT_WAIT_MS) -> None:
        locator.wait_for(state="visible", timeout=timeout_ms)

    def wait_for_url(self, pattern: str) -> None:
        self.page.wait_for_url(pattern)

    def url_contains(self, fragment: str) -> bool:
        return fragment in self.page.url

    def screenshot(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        self.page.screenshot(path=str(path), full_page=True)
        return path


class LoginPage:
    def __init__(self, page: Page) -> None:
        self.actions = PageActions(page)
        self.username_input = page.locator('[data-test="username"]')
        self.password_input = page.locator('[data-test="password"]')
        self.login_button = page.locator('[data-test="login-button"]')
        self.error_message = page.locator('[data-test="error"]')

    def open(self, base_url: str) -> None:
        self.actions.goto(base_url)

    def login(self, username: str, password: str) -> None:
        self.actions.fill(self.username_input, username)
        self.actions.fill(self.password_input, password)
        self.actions.click(self.login_button)

    def error_text(self) -> str:
        return self.actions.text(self.error_message)

    def is_logged_in(self) -> bool:
        self.actions.wait_for_url(INVENTORY_URL)
        return self.actions.url_contains("inventory.html")


class ProductsPage:
    def __init__(self, page: Page) -> None:
        self.actions = PageActions(page)
        self.page_title = page.locator(".title")
        self.inventory_list = page.locator(".inventory_list")
        self.cart_icon = page.locator(".shopping_cart_link")
        self.menu_button = page.locator("#react-burger-menu-btn")
        self.product_items = page.locator(".inventory_item")
        self.sort_dropdown = page.locator('[data-test="product-sort-container"]')
        self.product_names = page.locator(".inventory_item_name")
        self.product_prices = page.locator(".inventory_item_price")

    def is_open(self) -> bool:
        self.actions.wait_for_url(INVENTORY_URL)
        return self.actions.url_contains("inventory.html")

    def title(self) -> str:
        return self.actions.text(self.page_title)

    def is_inventory_visible(self) -> bool:
        return self.actions.is_visible(self.inventory_list)

    def product_count(self) -> int:
        return self.product_items.count()

    def add_to_cart(self, product_name: str) -> None:
        button = self.actions.page.locator(f'[data-test="{product_button_id(product_name)}"]')
        self.actions.click(button)

    def open_cart(self) -> None:
        self.actions.click(self.cart_icon)

    def sort_by(self, option: SortOption) -> None:
        self.sort_dropdown.select_option(option)
        self.actions.wait_visible(self.product_names.first)

    def names(self) -> list[str]:
        return self.product_names.all_text_contents()

    def prices(self) -> list[float]:
        return [parse_price(text) for text in self.product_prices.all_text_contents()]


class ShoppingCartPage:
    def __init__(self, page: Page) -> None:
        self.actions = PageActions(page)
        self.page_title = page.locator(".title")
        self.cart_items = page.locator(".cart_item")
        self.cart_quantity = page.locator(".cart_quantity")
        self.cart_description = page.locator(".cart_item_label")
        self.continue_shopping_button = page.locator('[data-test="continue-shopping"]')
        self.checkout_button = page.locator('[data-test="checkout"]')
        self.remove_buttons = page.locator('[data-test^="remove-"]')
        self.item_names = page.locator(".inventory_item_name")

    def is_open(self) -> bool:
        self.actions.wait_for_url(CART_URL)
        return self.actions.url_contains("cart.html")

    def title(self) -> str:
        return self.actions.text(self.page_title)

    def is_quantity_visible(self) -> bool:
        return self.actions.is_visible(self.cart_quantity.first)

    def is_description_visible(self) -> bool:
        return self.actions.is_visible(self.cart_description.first)

    def is_remove_visible(self) -> bool:
        return self.remove_buttons.count() > 0 and self.actions.is_visible(self.remove_buttons.first)

    def continue_shopping(self) -> None:
        self.actions.click(self.continue_shopping_button)

    def checkout(self) -> None:
        self.actions.click(self.checkout_button)

    def remove_first(self) -> None:
        self.actions.click(self.remove_buttons.first)

    def item_count(self) -> int:
        return self.cart_items.count()

    def names(self) -> list[str]:
        return self.item_names.all_text_contents()

    def contains(self, item_name: str) -> bool:
        return _contains_casefold(self.names(), item_name)


def _contains_casefold(values: Iterable[str], needle: str) -> bool:
    folded = needle.casefold()
    return any(folded in value.casefold() for value in values)
