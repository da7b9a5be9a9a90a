"""Narrow browser-automation interface and its Playwright implementation.

Crawl logic only talks to :class:`BrowserSession`, so it can be driven by a fake
session in tests without a real browser.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

from playwright.async_api import async_playwright, Browser, Page, Playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from prospect_finder.config import settings
from prospect_finder.exceptions import BrowserLaunchError
from prospect_finder.services.fetcher import USER_AGENT

logger = logging.getLogger(__name__)

# Hide the most obvious automation marker
STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {get: () => undefined});
"""

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
]


class BrowserSession(Protocol):
    @property
    def url(self) -> str: ...

    async def navigate(self, url: str, timeout_ms: Optional[int] = None, wait_until: str = "domcontentloaded") -> None: ...

    async def wait_for(self, selector: str, timeout_ms: int = 10000) -> bool: ...

    async def evaluate(self, script: str, arg: Any = None) -> Any: ...

    async def scroll(self, selector: str) -> None: ...

    async def click(self, selector: str) -> bool: ...

    async def content(self) -> str: ...

    async def close(self) -> None: ...


BrowserFactory = Callable[[], Awaitable[BrowserSession]]


class PlaywrightBrowserSession:
    """One Chromium instance with a single page, owned by one crawl or adapter."""

    def __init__(self, playwright: Playwright, browser: Browser, page: Page):
        self._playwright = playwright
        self._browser = browser
        self._page = page
        self._closed = False

    @classmethod
    async def launch(
        cls,
        headless: Optional[bool] = None,
        viewport: Optional[dict] = None,
    ) -> "PlaywrightBrowserSession":
        headless = settings.browser_headless if headless is None else headless
        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(headless=headless, args=LAUNCH_ARGS)
            context = await browser.new_context(
                user_agent=USER_AGENT,
                viewport=viewport or {"width": 1920, "height": 1080},
            )
            page = await context.new_page()
            await page.add_init_script(STEALTH_SCRIPT)
        except PlaywrightError as e:
            await playwright.stop()
            raise BrowserLaunchError(f"Failed to launch browser: {e}") from e
        return cls(playwright, browser, page)

    @property
    def url(self) -> str:
        return self._page.url

    async def navigate(self, url: str, timeout_ms: Optional[int] = None, wait_until: str = "domcontentloaded") -> None:
        await self._page.goto(url, wait_until=wait_until, timeout=timeout_ms or settings.navigation_timeout_ms)

    async def wait_for(self, selector: str, timeout_ms: int = 10000) -> bool:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if arg is None:
            return await self._page.evaluate(script)
        return await self._page.evaluate(script, arg)

    async def scroll(self, selector: str) -> None:
        await self._page.evaluate(
            """(selector) => {
                const container = document.querySelector(selector);
                if (container) container.scrollTop = container.scrollHeight;
                else window.scrollTo(0, document.body.scrollHeight);
            }""",
            selector,
        )

    async def click(self, selector: str) -> bool:
        element = await self._page.query_selector(selector)
        if element is None:
            return False
        await element.click()
        return True

    async def content(self) -> str:
        return await self._page.content()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._browser.close()
        finally:
            await self._playwright.stop()


async def launch_browser() -> BrowserSession:
    return await PlaywrightBrowserSession.launch()
