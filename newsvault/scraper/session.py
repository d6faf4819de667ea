"""Headless browser session backed by Playwright.

Usage::

    async with BrowserSession() as session:
        page = await session.new_page(navigation_timeout_ms=30_000)
        response = await page.goto(url, wait_until="domcontentloaded")

The crawl pipeline only relies on a handful of page operations (``goto``,
``reload``, ``evaluate``, ``wait_for_selector``, ``content``, ``url`` and
``close``), so any object exposing them can stand in for a real browser.
Tests pass fakes through the ``session_factory`` arguments of the extractor
and archiver.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

import logfire

from newsvault.config import settings


class BrowserSession:
    """One Playwright driver plus one Chromium instance."""

    def __init__(
        self,
        headless: Optional[bool] = None,
        args: Optional[Sequence[str]] = None,
    ) -> None:
        self._headless = settings.headless if headless is None else headless
        self._args = list(settings.browser_args if args is None else args)
        self._playwright: Any = None
        self._browser: Any = None

    @property
    def started(self) -> bool:
        return self._browser is not None

    async def start(self) -> None:
        """Launch the driver and browser.  No-op when already running."""
        if self._browser is not None:
            return

        # Imported lazily so importing the package does not require the
        # Playwright driver to be installed.
        from playwright.async_api import async_playwright  # noqa: PLC0415

        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self._headless,
                args=self._args,
            )
        except Exception:
            await self._playwright.stop()
            self._playwright = None
            raise
        logfire.debug("Browser launched", headless=self._headless)

    async def new_page(self, navigation_timeout_ms: int = 30_000) -> Any:
        """Open a fresh page with its default navigation timeout set."""
        if self._browser is None:
            await self.start()
        page = await self._browser.new_page()
        page.set_default_navigation_timeout(navigation_timeout_ms)
        return page

    async def close(self) -> None:
        """Close browser then driver.  Teardown errors are logged, not raised."""
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as exc:
                logfire.debug("Browser close failed", error=str(exc))
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as exc:
                logfire.debug("Playwright stop failed", error=str(exc))
            self._playwright = None

    async def __aenter__(self) -> BrowserSession:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


# Factory signature accepted by LinkExtractor / ContentArchiver.
SessionFactory = Callable[[], BrowserSession]
