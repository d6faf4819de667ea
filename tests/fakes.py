"""In-memory stand-ins for the Playwright objects the crawl pipeline drives.

Only the handful of page operations used by the extractor, the content
rules and the archiver are implemented.  Scripts are recognised by the
constants they are built from, so no JavaScript is ever executed.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from newsvault.scraper.link_extractor import (
    _SCROLL_HEIGHT_JS,
    _SCROLL_ONE_VIEWPORT_JS,
    _SCROLL_TO_BOTTOM_JS,
)
from newsvault.scraper.rules import COLLECT_ANCHORS_JS


class FakeResponse:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok


class FakePage:
    """A page whose behaviour is fixed up-front.

    Args:
        anchors: Raw ``{title, url}`` dicts returned by the anchor routine.
        ok: Response status for ``goto``/``reload``; ``None`` returns no response.
        heights: Successive ``scrollHeight`` values (the last one repeats).
        articles: ``url -> raw extract dict`` for content-rule scripts.
        html: Returned by ``content()``.
        fail_urls: ``goto`` raises for these URLs.
        goto_error: Exception raised by every ``goto`` call.
    """

    def __init__(
        self,
        anchors: Optional[List[Dict[str, Any]]] = None,
        ok: Optional[bool] = True,
        heights: Optional[List[float]] = None,
        articles: Optional[Dict[str, Dict[str, Any]]] = None,
        html: str = "",
        fail_urls: Optional[set] = None,
        goto_error: Optional[BaseException] = None,
    ) -> None:
        self.anchors = anchors
        self.ok = ok
        self.heights = list(heights or [1000])
        self.articles = articles or {}
        self.html = html
        self.fail_urls = fail_urls or set()
        self.goto_error = goto_error

        self.url = "about:blank"
        self.gotos: List[str] = []
        self.reloads = 0
        self.scroll_steps = 0
        self.bottom_jumps = 0
        self.waited_for: List[str] = []
        self.closed = False
        self.default_navigation_timeout: Optional[int] = None

    def set_default_navigation_timeout(self, timeout: int) -> None:
        self.default_navigation_timeout = timeout

    def _response(self) -> Optional[FakeResponse]:
        return None if self.ok is None else FakeResponse(self.ok)

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[int] = None):
        self.gotos.append(url)
        if self.goto_error is not None:
            raise self.goto_error
        if url in self.fail_urls:
            raise RuntimeError(f"net::ERR_CONNECTION_RESET at {url}")
        self.url = url
        return self._response()

    async def reload(self, wait_until: str = "load", timeout: Optional[int] = None):
        self.reloads += 1
        return self._response()

    async def wait_for_selector(self, selector: str, timeout: Optional[int] = None) -> None:
        self.waited_for.append(selector)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == COLLECT_ANCHORS_JS:
            return self.anchors
        if script == _SCROLL_HEIGHT_JS:
            return self.heights.pop(0) if len(self.heights) > 1 else self.heights[0]
        if script == _SCROLL_ONE_VIEWPORT_JS:
            self.scroll_steps += 1
            return None
        if script == _SCROLL_TO_BOTTOM_JS:
            self.bottom_jumps += 1
            return None
        return self.articles.get(self.url)

    async def content(self) -> str:
        return self.html

    async def close(self) -> None:
        self.closed = True


class FakeSession:
    """Hands out pages built by *page_factory*; records its lifecycle."""

    def __init__(self, page_factory: Callable[[], FakePage]) -> None:
        self._page_factory = page_factory
        self.pages: List[FakePage] = []
        self.started = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    async def new_page(self, navigation_timeout_ms: int = 30_000) -> FakePage:
        page = self._page_factory()
        page.set_default_navigation_timeout(navigation_timeout_ms)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.closed = True

    async def __aenter__(self) -> FakeSession:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class SessionRecorder:
    """``session_factory`` that remembers every session it created."""

    def __init__(self, page_factory: Callable[[], FakePage]) -> None:
        self._page_factory = page_factory
        self.sessions: List[FakeSession] = []

    def __call__(self) -> FakeSession:
        session = FakeSession(self._page_factory)
        self.sessions.append(session)
        return session
