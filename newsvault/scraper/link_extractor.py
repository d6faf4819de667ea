"""Listing-page link discovery.

A :class:`LinkExtractor` drives one browser page against a site's listing
page and returns the article links found on it:

    navigate → (wait for anchors) → (scroll to lazy-load) → collect anchors
    in the page → normalise / dedupe / filter in Python → status

Instances are stateful (the browser page is reused across calls) and are
**not** safe for concurrent use.
"""

from __future__ import annotations

import asyncio
from typing import Any, Iterable, List, Optional, Tuple

import logfire
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from newsvault.config import settings
from newsvault.scraper.models import ExtractionStatus, Link
from newsvault.scraper.rules import (
    COLLECT_ANCHORS_JS,
    ListingRule,
    OnAllFiltered,
    normalize_title,
)
from newsvault.scraper.session import BrowserSession, SessionFactory

_SCROLL_HEIGHT_JS = (
    "() => (document.scrollingElement && document.scrollingElement.scrollHeight)"
    " || document.body.scrollHeight || 0"
)
_SCROLL_ONE_VIEWPORT_JS = "() => window.scrollBy(0, window.innerHeight)"
_SCROLL_TO_BOTTOM_JS = (
    "() => window.scrollTo(0, (document.scrollingElement"
    " && document.scrollingElement.scrollHeight) || document.body.scrollHeight || 0)"
)


class ExtractorClosedError(RuntimeError):
    """Raised when a closed extractor is used again."""


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def postprocess_links(items: Optional[Iterable[Any]], rule: ListingRule) -> List[Link]:
    """Turn raw ``{title, url}`` pairs from the page into final :class:`Link` s.

    Titles are normalised, blank entries dropped, the rule's URL/title checks
    re-applied, and URLs de-duplicated case-insensitively (first one wins).
    The banned-title filter runs last; when it would remove everything the
    rule's :class:`OnAllFiltered` policy decides the outcome.
    """
    base: List[Link] = []
    seen: set[str] = set()
    for item in items or []:
        if not isinstance(item, dict):
            continue
        title = normalize_title(item.get("title"))
        url = (item.get("url") or "").strip()
        if not title or not url:
            continue
        if not rule.accepts_url(url) or not rule.accepts_title(title):
            continue
        key = url.lower()
        if key in seen:
            continue
        seen.add(key)
        base.append(Link(title=title, url=url))

    filtered = [link for link in base if not rule.is_banned(link.title or "")]
    if filtered:
        return filtered
    if base and rule.on_all_filtered is OnAllFiltered.RETURN_UNFILTERED:
        return base
    return []


async def load_more_by_scrolling(page: Any, pages: int, delay_ms: int) -> int:
    """Scroll *page* up to *pages* viewports to trigger lazy loading.

    After each step the total content height is polled.  If it did not grow,
    one forced jump to the bottom is tried; if the height is still unchanged
    the loop stops early.

    Returns:
        The number of scroll steps that grew the page.
    """
    delay = max(delay_ms, 0) / 1000
    grown = 0
    last_height = float(await page.evaluate(_SCROLL_HEIGHT_JS) or 0)

    for _ in range(max(pages, 0)):
        await page.evaluate(_SCROLL_ONE_VIEWPORT_JS)
        await asyncio.sleep(delay)
        new_height = float(await page.evaluate(_SCROLL_HEIGHT_JS) or 0)

        if new_height <= last_height:
            await page.evaluate(_SCROLL_TO_BOTTOM_JS)
            await asyncio.sleep(delay)
            new_height = float(await page.evaluate(_SCROLL_HEIGHT_JS) or 0)
            if new_height <= last_height:
                break

        grown += 1
        last_height = new_height

    return grown


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

class LinkExtractor:
    """Discovers article links on one site's listing page."""

    def __init__(
        self,
        base_url: str,
        rule: ListingRule,
        session_factory: Optional[SessionFactory] = None,
        navigation_timeout_ms: Optional[int] = None,
        anchor_wait_timeout_ms: Optional[int] = None,
        scroll_step_delay_ms: Optional[int] = None,
        name: Optional[str] = None,
    ) -> None:
        self._base_url = base_url
        self._rule = rule
        self._session_factory = session_factory or BrowserSession
        self._navigation_timeout_ms = navigation_timeout_ms or settings.navigation_timeout_ms
        self._anchor_wait_timeout_ms = (
            settings.anchor_wait_timeout_ms
            if anchor_wait_timeout_ms is None
            else anchor_wait_timeout_ms
        )
        self._scroll_step_delay_ms = (
            settings.scroll_step_delay_ms
            if scroll_step_delay_ms is None
            else scroll_step_delay_ms
        )
        self._name = name or base_url

        self._session: Optional[BrowserSession] = None
        self._page: Any = None
        self._last_url: Optional[str] = None
        self._closed = False

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise ExtractorClosedError(f"LinkExtractor for {self._name} is closed")

    async def _ensure_page(self) -> Any:
        if self._page is not None and self._session is not None:
            return self._page

        self._session = self._session_factory()
        await self._session.start()
        self._page = await self._session.new_page(self._navigation_timeout_ms)
        return self._page

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_page_links_and_titles(
        self,
        pages: Optional[int] = None,
        url: Optional[str] = None,
    ) -> Tuple[ExtractionStatus, Optional[List[Link]]]:
        """Visit the listing page and return ``(status, links)``.

        Args:
            pages: Lazy-load scroll steps.  Defaults to the rule's
                ``scroll_pages``; ``0`` disables scrolling.
            url: Listing URL to visit instead of the base URL.  It is
                remembered and reused by :meth:`refresh`.

        Returns:
            ``(SUCCESS, links)`` when any link survives filtering, otherwise
            ``(NAVIGATION_FAILED | NO_LINKS | ERROR, None)``.  Errors are
            logged and never raised.
        """
        self._check_open()
        target = url or self._base_url
        steps = self._rule.scroll_pages if pages is None else pages

        try:
            page = await self._ensure_page()
            if url is not None:
                self._last_url = url

            try:
                response = await page.goto(
                    target,
                    wait_until="domcontentloaded",
                    timeout=self._navigation_timeout_ms,
                )
            except PlaywrightTimeoutError:
                logfire.warning("Listing navigation timed out", site=self._name, url=target)
                response = None
            had_nav_issue = response is None or not response.ok

            if self._rule.wait_for_anchors:
                try:
                    await page.wait_for_selector(
                        "a[href]", timeout=self._anchor_wait_timeout_ms
                    )
                except PlaywrightTimeoutError:
                    # No anchors yet; extraction below decides the outcome.
                    pass

            if steps > 0:
                await load_more_by_scrolling(page, steps, self._scroll_step_delay_ms)

            items = await page.evaluate(
                COLLECT_ANCHORS_JS, self._rule.as_script_options()
            )
            links = postprocess_links(items, self._rule)
        except Exception as exc:
            logfire.error(
                "Link extraction failed", site=self._name, url=target, error=str(exc)
            )
            return ExtractionStatus.ERROR, None

        if links:
            return ExtractionStatus.SUCCESS, links

        status = (
            ExtractionStatus.NAVIGATION_FAILED if had_nav_issue else ExtractionStatus.NO_LINKS
        )
        return status, None

    async def refresh(
        self,
        timeout_ms: Optional[int] = None,
        wait_until: str = "domcontentloaded",
    ) -> bool:
        """Reload the listing page, or navigate to it if nothing is loaded yet.

        Returns:
            ``True`` only when the navigation produced an OK response.
        """
        self._check_open()
        timeout = timeout_ms or self._navigation_timeout_ms

        try:
            page = await self._ensure_page()
            current = page.url or ""
            if not current.strip() or current.lower() == "about:blank":
                response = await page.goto(
                    self._last_url or self._base_url,
                    wait_until=wait_until,
                    timeout=timeout,
                )
            else:
                response = await page.reload(wait_until=wait_until, timeout=timeout)
            return response is not None and response.ok
        except Exception as exc:
            logfire.warning("Listing refresh failed", site=self._name, error=str(exc))
            return False

    async def release_session(self) -> None:
        """Close the page and browser.  The extractor re-acquires them on next use."""
        page, self._page = self._page, None
        session, self._session = self._session, None

        if page is not None:
            try:
                await page.close()
            except Exception as exc:
                logfire.debug("Page close failed", site=self._name, error=str(exc))
        if session is not None:
            await session.close()

    async def close(self) -> None:
        """Release all resources.  Calling it twice is a no-op."""
        if self._closed:
            return
        try:
            await self.release_session()
        finally:
            self._closed = True

    async def __aenter__(self) -> LinkExtractor:
        self._check_open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
