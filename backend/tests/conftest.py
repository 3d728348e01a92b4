"""Pytest configuration and shared fixtures."""

from typing import Callable, Dict, List, Optional, Union

import pytest

from scrapeflow.registry import DomainRegistry


@pytest.fixture
def registry() -> DomainRegistry:
    """A fresh registry with the built-in domain configs."""
    return DomainRegistry()


@pytest.fixture
def sleeps() -> List[float]:
    """Records requested sleep durations instead of sleeping."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


# ============================================================================
# HTML BUILDERS
# ============================================================================

def product_card(title: str, price: str, href: str, image: str = "/img/p.jpg") -> str:
    return (
        '<div class="product">'
        f'<h2 class="title">{title}</h2>'
        f'<span class="price">{price}</span>'
        f'<a href="{href}">voir</a>'
        f'<img src="{image}">'
        "</div>"
    )


def listing_page(cards: List[str], next_link: bool = False, title: str = "Listing") -> str:
    nav = '<a class="pagination__next" href="?page=next">Suivant</a>' if next_link else ""
    return f"<html><head><title>{title}</title></head><body>{''.join(cards)}{nav}</body></html>"


def ebay_card(title: str, price: str, href: str, srcset: Optional[str] = None) -> str:
    image = (
        f'<img class="s-item__image-img" src="data:image/gif;base64,R0lGOD" srcset="{srcset}">'
        if srcset
        else '<img class="s-item__image-img" src="https://i.ebayimg.com/a.jpg">'
    )
    return (
        '<li class="s-item">'
        f'<a class="s-item__link" href="{href}"><div class="s-item__title">{title}</div></a>'
        f'<span class="s-item__price">{price}</span>'
        f"{image}"
        "</li>"
    )


# ============================================================================
# BROWSER FAKES
# ============================================================================

class FakeContext:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


class FakePage:
    """Stands in for a Playwright page."""

    def __init__(self, html: str = "", goto_error: Optional[Exception] = None, selector_error: Optional[Exception] = None):
        self.html = html
        self.goto_error = goto_error
        self.selector_error = selector_error
        self.context = FakeContext()
        self.visited: List[str] = []
        self.scroll_args = None
        self.closed = False

    async def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        if self.goto_error is not None:
            raise self.goto_error

    async def wait_for_selector(self, selector, timeout=None):
        if self.selector_error is not None:
            raise self.selector_error

    async def evaluate(self, script, arg=None):
        self.scroll_args = arg

    async def content(self):
        return self.html

    async def close(self):
        self.closed = True


class FakeBrowserManager:
    """Reference-counting browser manager serving canned pages.

    ``pages`` maps a URL substring to HTML, or to an exception raised on goto.
    """

    def __init__(self, pages: Optional[Dict[str, Union[str, Exception]]] = None, default_html: str = ""):
        self.pages = pages or {}
        self.default_html = default_html
        self.holders = 0
        self.acquire_calls = 0
        self.release_calls = 0
        self.opened: List[FakePage] = []
        self.closed_pages: List[FakePage] = []
        self.page_factory: Optional[Callable[[], FakePage]] = None

    async def acquire(self):
        self.holders += 1
        self.acquire_calls += 1
        return self

    async def release(self):
        self.holders = max(0, self.holders - 1)
        self.release_calls += 1

    async def new_page(self, extra_headers=None):
        page = _RoutingPage(self)
        self.opened.append(page)
        return page

    async def close_page(self, page):
        await page.close()
        await page.context.close()
        self.closed_pages.append(page)


class _RoutingPage(FakePage):
    """FakePage whose content depends on the URL it navigated to."""

    def __init__(self, manager: FakeBrowserManager):
        super().__init__()
        self._manager = manager

    async def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        for fragment, value in self._manager.pages.items():
            if fragment in url:
                if isinstance(value, Exception):
                    raise value
                self.html = value
                return
        self.html = self._manager.default_html


@pytest.fixture
def fake_browser() -> FakeBrowserManager:
    return FakeBrowserManager()
