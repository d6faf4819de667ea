"""One site's discover → dedupe → archive → classify → persist cycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional

import logfire

from newsvault.classify import Category, Classifier
from newsvault.config import Settings
from newsvault.config import settings as default_settings
from newsvault.db.models import ArchivedEntity
from newsvault.db.store import ArchiveStore
from newsvault.scraper.archiver import ContentArchiver
from newsvault.scraper.link_extractor import LinkExtractor
from newsvault.scraper.models import ArchiveResult, ExtractionStatus, Link
from newsvault.scraper.rules import ContentRule, ListingRule


# ---------------------------------------------------------------------------
# Site description
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CrawlerIdentity:
    url: str
    friendly_name: str
    internal_name: str

    def matches(self, name: str) -> bool:
        """Case-insensitive comparison against ``internal_name``."""
        return (name or "").strip().lower() == self.internal_name.lower()


@dataclass(frozen=True)
class SiteProfile:
    """Everything a :class:`Crawler` needs to know about one site.

    ``discovery_pages`` overrides the listing rule's scroll depth.
    ``refresh_after_run`` reloads the listing page at the end of every run
    (and when nothing new was found) so the next cycle sees a fresh feed.
    """

    identity: CrawlerIdentity
    listing_rule: ListingRule
    content_rule: ContentRule
    discovery_pages: Optional[int] = None
    refresh_after_run: bool = False

    @property
    def name(self) -> str:
        return self.identity.internal_name


ExtractorFactory = Callable[[SiteProfile, Settings], LinkExtractor]
ArchiverFactory = Callable[[SiteProfile, Settings], ContentArchiver]


def default_extractor_factory(profile: SiteProfile, cfg: Settings) -> LinkExtractor:
    return LinkExtractor(
        profile.identity.url,
        profile.listing_rule,
        navigation_timeout_ms=cfg.navigation_timeout_ms,
        anchor_wait_timeout_ms=cfg.anchor_wait_timeout_ms,
        scroll_step_delay_ms=cfg.scroll_step_delay_ms,
        name=profile.name,
    )


def default_archiver_factory(profile: SiteProfile, cfg: Settings) -> ContentArchiver:
    return ContentArchiver(profile.content_rule, name=profile.name)


# ---------------------------------------------------------------------------
# Run report
# ---------------------------------------------------------------------------

@dataclass
class CrawlReport:
    site: str
    status: Optional[ExtractionStatus] = None
    discovered: int = 0
    new: int = 0
    archived: int = 0
    failed: int = 0
    stored: int = 0
    errors: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        status = self.status.value if self.status else "skipped"
        return (
            f"{self.site}: {status}, discovered={self.discovered} new={self.new} "
            f"archived={self.archived} failed={self.failed} stored={self.stored}"
        )


# ---------------------------------------------------------------------------
# Crawler
# ---------------------------------------------------------------------------

class Crawler:
    """Composes a :class:`LinkExtractor` and a :class:`ContentArchiver`.

    Components are created by :meth:`initialize_components` and owned
    exclusively by this crawler until :meth:`release_components`.
    """

    def __init__(
        self,
        profile: SiteProfile,
        classifier: Classifier,
        settings: Optional[Settings] = None,
        extractor_factory: Optional[ExtractorFactory] = None,
        archiver_factory: Optional[ArchiverFactory] = None,
    ) -> None:
        self._profile = profile
        self._classifier = classifier
        self._settings = settings or default_settings
        self._extractor_factory = extractor_factory or default_extractor_factory
        self._archiver_factory = archiver_factory or default_archiver_factory
        self._extractor: Optional[LinkExtractor] = None
        self._archiver: Optional[ContentArchiver] = None

    @property
    def identity(self) -> CrawlerIdentity:
        return self._profile.identity

    @property
    def profile(self) -> SiteProfile:
        return self._profile

    @property
    def initialized(self) -> bool:
        return self._extractor is not None and self._archiver is not None

    def initialize_components(self) -> None:
        if self.initialized:
            return
        self._extractor = self._extractor_factory(self._profile, self._settings)
        self._archiver = self._archiver_factory(self._profile, self._settings)
        logfire.debug("Crawler components initialised", site=self._profile.name)

    async def release_components(self) -> None:
        extractor, self._extractor = self._extractor, None
        archiver, self._archiver = self._archiver, None
        try:
            if extractor is not None:
                await extractor.close()
        finally:
            if archiver is not None:
                await archiver.close()

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, store: ArchiveStore) -> CrawlReport:
        """Run one crawl cycle against *store*.

        Discovery failures short-circuit the run; per-link failures are
        counted and skipped.  All kept entities are committed together.
        """
        site = self._profile.name
        report = CrawlReport(site=site)

        if not self.initialized:
            logfire.warning("Crawler not initialised, skipping run", site=site)
            return report

        with logfire.span("crawl {site}", site=site):
            status, links = await self._extractor.get_page_links_and_titles(
                pages=self._profile.discovery_pages
            )
            report.status = status
            logfire.info("Link discovery finished", site=site, status=status.value)

            if not links:
                logfire.info("No links discovered", site=site)
                return report
            report.discovered = len(links)

            existing = store.existing_urls()
            new_links = [
                link for link in links
                if link.url and link.url.strip() and link.url not in existing
            ]
            report.new = len(new_links)

            if not new_links:
                logfire.info("All discovered links already archived", site=site)
                await self._refresh_listing()
                return report

            logfire.info("Archiving new links", site=site, count=len(new_links))
            results = await self._archiver.archive(
                new_links,
                output_root=self._settings.output_root,
                navigation_timeout_ms=self._settings.navigation_timeout_ms,
            )
            if not results:
                logfire.warning("Archiver returned no results", site=site)
                await self._refresh_listing()
                return report

            for result in results:
                if not result.ok:
                    report.failed += 1
                    report.errors.append(f"{result.url}: {result.error}")
                    continue
                report.archived += 1

                if not result.url or not result.url.strip():
                    continue
                if result.url in existing:
                    continue
                if result.text_length == 0:
                    continue

                store.append(self._to_entity(result))
                existing.add(result.url)

            report.stored = store.commit()
            logfire.info(
                "Crawl finished",
                site=site,
                new=report.new,
                archived=report.archived,
                failed=report.failed,
                stored=report.stored,
            )
            await self._refresh_listing()

        return report

    async def discover(self, pages: Optional[int] = None) -> tuple[ExtractionStatus, List[Link]]:
        """Discovery only; nothing is archived or stored."""
        if not self.initialized:
            raise RuntimeError(f"Crawler {self._profile.name} is not initialised")
        status, links = await self._extractor.get_page_links_and_titles(
            pages=self._profile.discovery_pages if pages is None else pages
        )
        return status, links or []

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _classify(self, title: str) -> Category:
        try:
            return self._classifier.classify(title)
        except Exception as exc:
            logfire.warning(
                "Classification failed, storing as uncategorised",
                site=self._profile.name,
                title=title,
                error=str(exc),
            )
            return Category.NONE

    def _to_entity(self, result: ArchiveResult) -> ArchivedEntity:
        return ArchivedEntity(
            title=result.title or "",
            url=result.url,
            text_length=result.text_length,
            image_count=result.image_count,
            content=result.content or "",
            category=self._classify(result.title or ""),
            publish_time=result.publish_time,
            publisher=result.publisher,
        )

    async def _refresh_listing(self) -> None:
        if not self._profile.refresh_after_run or self._extractor is None:
            return
        if not await self._extractor.refresh():
            logfire.debug("Listing refresh did not return OK", site=self._profile.name)
