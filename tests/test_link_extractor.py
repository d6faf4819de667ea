"""Tests for listing-page link discovery.

Mocking strategy:
- A :class:`fakes.FakePage` replaces the Playwright page; anchor collection
  returns canned ``{title, url}`` dicts so only the Python post-processing,
  status logic and session lifecycle are exercised.
- Scroll delays are set to ``0`` so no real sleeping happens.
"""

from __future__ import annotations

import asyncio

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from fakes import FakePage, SessionRecorder
from newsvault.scraper.link_extractor import (
    ExtractorClosedError,
    LinkExtractor,
    load_more_by_scrolling,
    postprocess_links,
)
from newsvault.scraper.models import ExtractionStatus, Link
from newsvault.scraper.rules import (
    NETEASE_LISTING,
    STATIC_LISTING,
    TOUTIAO_LISTING,
    ListingRule,
    OnAllFiltered,
    normalize_title,
)


def _extractor(page: FakePage, rule: ListingRule = STATIC_LISTING, **kwargs) -> tuple:
    recorder = SessionRecorder(lambda: page)
    extractor = LinkExtractor(
        "https://news.example.com/",
        rule,
        session_factory=recorder,
        scroll_step_delay_ms=0,
        **kwargs,
    )
    return extractor, recorder


# ---------------------------------------------------------------------------
# normalize_title / postprocess_links
# ---------------------------------------------------------------------------

class TestNormalizeTitle:
    def test_collapses_mixed_whitespace(self) -> None:
        assert normalize_title("A\n\tB   C") == "A B C"

    def test_trims_and_handles_none(self) -> None:
        assert normalize_title("  hello \r\n") == "hello"
        assert normalize_title(None) == ""


class TestPostprocessLinks:
    def test_drops_blank_titles_and_urls(self) -> None:
        items = [
            {"title": "  ", "url": "https://a.example/1"},
            {"title": "Real", "url": ""},
            {"title": "Kept", "url": "https://a.example/2"},
        ]
        assert postprocess_links(items, STATIC_LISTING) == [
            Link("Kept", "https://a.example/2")
        ]

    def test_dedupes_urls_case_insensitively_first_wins(self) -> None:
        items = [
            {"title": "First", "url": "https://a.example/Story"},
            {"title": "Second", "url": "https://A.EXAMPLE/story"},
        ]
        links = postprocess_links(items, STATIC_LISTING)
        assert [link.title for link in links] == ["First"]

    def test_ignores_non_dict_items_and_none(self) -> None:
        assert postprocess_links(None, STATIC_LISTING) == []
        assert postprocess_links(["x", 3], STATIC_LISTING) == []

    def test_prefix_recheck_rejects_foreign_urls(self) -> None:
        items = [
            {"title": "Article", "url": "https://www.toutiao.com/article/123/"},
            {"title": "Video", "url": "https://www.toutiao.com/video/456/"},
            {"title": "Elsewhere", "url": "https://other.example/article/1"},
        ]
        links = postprocess_links(items, TOUTIAO_LISTING)
        assert [link.url for link in links] == ["https://www.toutiao.com/article/123/"]

    def test_toutiao_skips_comment_anchors_and_noise_titles(self) -> None:
        items = [
            {"title": "12 评论", "url": "https://www.toutiao.com/article/1/"},
            {"title": "Story", "url": "https://www.toutiao.com/article/2/#comment"},
            {"title": "Feed", "url": "https://www.toutiao.com/article/3/?source=feed"},
            {"title": "Good", "url": "https://www.toutiao.com/article/4/"},
        ]
        links = postprocess_links(items, TOUTIAO_LISTING)
        assert [link.title for link in links] == ["Good"]

    def test_banned_titles_removed_when_others_survive(self) -> None:
        items = [
            {"title": "首页", "url": "https://bbs.example/index"},
            {"title": "A real headline", "url": "https://bbs.example/t/1"},
        ]
        links = postprocess_links(items, STATIC_LISTING)
        assert [link.title for link in links] == ["A real headline"]

    def test_all_banned_returns_unfiltered_when_policy_says_so(self) -> None:
        rule = ListingRule(
            banned_titles=frozenset({"Home"}),
            on_all_filtered=OnAllFiltered.RETURN_UNFILTERED,
        )
        items = [{"title": "Home", "url": "https://a.example/"}]
        assert postprocess_links(items, rule) == [Link("Home", "https://a.example/")]

    def test_all_banned_returns_empty_when_policy_says_so(self) -> None:
        rule = ListingRule(
            banned_titles=frozenset({"Home"}),
            on_all_filtered=OnAllFiltered.RETURN_EMPTY,
        )
        items = [{"title": "Home", "url": "https://a.example/"}]
        assert postprocess_links(items, rule) == []

    def test_banned_comparison_uses_normalised_title(self) -> None:
        rule = ListingRule(banned_titles=frozenset({"About  us"}), on_all_filtered=OnAllFiltered.RETURN_EMPTY)
        items = [{"title": "About\nus", "url": "https://a.example/about"}]
        assert postprocess_links(items, rule) == []


# ---------------------------------------------------------------------------
# load_more_by_scrolling
# ---------------------------------------------------------------------------

class TestScrolling:
    async def test_stops_early_when_height_stops_growing(self) -> None:
        page = FakePage(heights=[1000, 2000, 3000, 3000])
        grown = await load_more_by_scrolling(page, pages=10, delay_ms=0)

        assert grown == 2
        assert page.scroll_steps == 3
        assert page.bottom_jumps == 1

    async def test_forced_jump_that_grows_keeps_scrolling(self) -> None:
        # Step 1 stalls, the forced jump loads more; step 2 grows normally.
        page = FakePage(heights=[1000, 1000, 1500, 2500])
        grown = await load_more_by_scrolling(page, pages=2, delay_ms=0)

        assert grown == 2
        assert page.bottom_jumps == 1

    async def test_zero_pages_does_not_scroll(self) -> None:
        page = FakePage()
        assert await load_more_by_scrolling(page, pages=0, delay_ms=0) == 0
        assert page.scroll_steps == 0


# ---------------------------------------------------------------------------
# LinkExtractor.get_page_links_and_titles
# ---------------------------------------------------------------------------

class TestGetPageLinks:
    async def test_success_returns_normalised_links(self) -> None:
        page = FakePage(
            anchors=[
                {"title": "A\n\tB   C", "url": "https://x.example/1"},
                {"title": "Other", "url": "https://x.example/2"},
            ]
        )
        extractor, _ = _extractor(page)

        status, links = await extractor.get_page_links_and_titles()

        assert status is ExtractionStatus.SUCCESS
        assert links == [Link("A B C", "https://x.example/1"), Link("Other", "https://x.example/2")]
        assert page.gotos == ["https://news.example.com/"]

    async def test_non_ok_response_with_no_links_is_navigation_failed(self) -> None:
        page = FakePage(anchors=[], ok=False)
        extractor, _ = _extractor(page)

        status, links = await extractor.get_page_links_and_titles()

        assert status is ExtractionStatus.NAVIGATION_FAILED
        assert links is None

    async def test_missing_response_is_navigation_failed(self) -> None:
        page = FakePage(anchors=[], ok=None)
        extractor, _ = _extractor(page)

        status, _ = await extractor.get_page_links_and_titles()
        assert status is ExtractionStatus.NAVIGATION_FAILED

    async def test_navigation_timeout_is_navigation_failed(self) -> None:
        page = FakePage(anchors=[], goto_error=PlaywrightTimeoutError("Timeout 30000ms exceeded"))
        extractor, _ = _extractor(page)

        status, links = await extractor.get_page_links_and_titles()

        assert status is ExtractionStatus.NAVIGATION_FAILED
        assert links is None

    async def test_ok_response_with_no_links_is_no_links(self) -> None:
        page = FakePage(anchors=[])
        extractor, _ = _extractor(page)

        status, links = await extractor.get_page_links_and_titles()

        assert status is ExtractionStatus.NO_LINKS
        assert links is None

    async def test_links_despite_non_ok_response_is_success(self) -> None:
        page = FakePage(anchors=[{"title": "T", "url": "https://x.example/1"}], ok=False)
        extractor, _ = _extractor(page)

        status, links = await extractor.get_page_links_and_titles()
        assert status is ExtractionStatus.SUCCESS
        assert links

    async def test_unexpected_exception_is_error(self) -> None:
        page = FakePage(goto_error=RuntimeError("browser crashed"))
        extractor, _ = _extractor(page)

        status, links = await extractor.get_page_links_and_titles()

        assert status is ExtractionStatus.ERROR
        assert links is None

    async def test_cancellation_propagates(self) -> None:
        page = FakePage(goto_error=asyncio.CancelledError())
        extractor, _ = _extractor(page)

        with pytest.raises(asyncio.CancelledError):
            await extractor.get_page_links_and_titles()

    async def test_netease_all_banned_yields_no_links(self) -> None:
        rule = ListingRule(
            url_prefixes=NETEASE_LISTING.url_prefixes,
            banned_titles=frozenset({"Ad"}),
            on_all_filtered=NETEASE_LISTING.on_all_filtered,
        )
        page = FakePage(anchors=[{"title": "Ad", "url": "https://www.163.com/dy/article/X1.html"}])
        extractor, _ = _extractor(page, rule)

        status, links = await extractor.get_page_links_and_titles()
        assert status is ExtractionStatus.NO_LINKS
        assert links is None

    async def test_waits_for_anchors_and_scrolls_when_rule_asks(self) -> None:
        page = FakePage(
            anchors=[{"title": "T", "url": "https://www.toutiao.com/article/1/"}],
            heights=[1000, 2000, 2000],
        )
        extractor, _ = _extractor(page, TOUTIAO_LISTING, anchor_wait_timeout_ms=10)

        status, _ = await extractor.get_page_links_and_titles(pages=3)

        assert status is ExtractionStatus.SUCCESS
        assert page.waited_for == ["a[href]"]
        assert page.scroll_steps == 2

    async def test_session_reused_across_calls(self) -> None:
        page = FakePage(anchors=[{"title": "T", "url": "https://x.example/1"}])
        extractor, recorder = _extractor(page)

        await extractor.get_page_links_and_titles()
        await extractor.get_page_links_and_titles(url="https://news.example.com/page/2")

        assert len(recorder.sessions) == 1
        assert page.gotos == ["https://news.example.com/", "https://news.example.com/page/2"]


# ---------------------------------------------------------------------------
# refresh / lifecycle
# ---------------------------------------------------------------------------

class TestRefreshAndClose:
    async def test_refresh_before_navigation_goes_to_base_url(self) -> None:
        page = FakePage()
        extractor, _ = _extractor(page)

        assert await extractor.refresh() is True
        assert page.gotos == ["https://news.example.com/"]
        assert page.reloads == 0

    async def test_refresh_after_navigation_reloads(self) -> None:
        page = FakePage(anchors=[])
        extractor, _ = _extractor(page)
        await extractor.get_page_links_and_titles(url="https://news.example.com/latest")

        assert await extractor.refresh() is True
        assert page.reloads == 1

    async def test_refresh_false_on_non_ok_and_on_error(self) -> None:
        extractor, _ = _extractor(FakePage(ok=False))
        assert await extractor.refresh() is False

        extractor, _ = _extractor(FakePage(goto_error=RuntimeError("boom")))
        assert await extractor.refresh() is False

    async def test_close_releases_page_and_session_once(self) -> None:
        page = FakePage(anchors=[])
        extractor, recorder = _extractor(page)
        await extractor.get_page_links_and_titles()

        await extractor.close()
        await extractor.close()

        assert extractor.closed
        assert page.closed
        assert recorder.sessions[0].closed

    async def test_use_after_close_raises(self) -> None:
        extractor, _ = _extractor(FakePage())
        await extractor.close()

        with pytest.raises(ExtractorClosedError):
            await extractor.get_page_links_and_titles()
        with pytest.raises(ExtractorClosedError):
            await extractor.refresh()

    async def test_release_session_keeps_extractor_usable(self) -> None:
        page = FakePage(anchors=[{"title": "T", "url": "https://x.example/1"}])
        extractor, recorder = _extractor(page)
        await extractor.get_page_links_and_titles()

        await extractor.release_session()
        status, _ = await extractor.get_page_links_and_titles()

        assert status is ExtractionStatus.SUCCESS
        assert len(recorder.sessions) == 2
        assert not extractor.closed

    async def test_async_context_manager_closes(self) -> None:
        extractor, _ = _extractor(FakePage())
        async with extractor as ex:
            assert ex is extractor
        assert extractor.closed
