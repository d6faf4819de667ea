"""The set of crawlers run on every tick."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import logfire

from newsvault.classify import Classifier, NullClassifier
from newsvault.config import Settings
from newsvault.crawlers.base import Crawler, CrawlReport
from newsvault.crawlers.sites import get_site
from newsvault.db.store import ArchiveStore


class CrawlerRegistry:
    """Holds a fixed, ordered list of crawlers.

    Construct one explicitly and hand it to the orchestrator; there is no
    process-wide instance.
    """

    def __init__(self, crawlers: Iterable[Crawler] = ()) -> None:
        self._crawlers: List[Crawler] = []
        for crawler in crawlers:
            if self.get(crawler.identity.internal_name) is not None:
                raise ValueError(
                    f"Duplicate crawler name: {crawler.identity.internal_name!r}"
                )
            self._crawlers.append(crawler)

    @classmethod
    def from_settings(
        cls,
        cfg: Settings,
        classifier: Optional[Classifier] = None,
        sites: Optional[Iterable[str]] = None,
    ) -> CrawlerRegistry:
        """Build a registry for *sites* (default: ``cfg.enabled_sites``).

        Raises:
            KeyError: If a site name is not a built-in profile.
        """
        classifier = classifier or NullClassifier()
        names = list(sites) if sites else cfg.enabled_sites
        return cls(Crawler(get_site(name), classifier, cfg) for name in names)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def names(self) -> List[str]:
        return [c.identity.internal_name for c in self._crawlers]

    def __iter__(self):
        return iter(self._crawlers)

    def __len__(self) -> int:
        return len(self._crawlers)

    def get(self, name: str) -> Optional[Crawler]:
        """Find a crawler by internal name, ignoring case."""
        return next((c for c in self._crawlers if c.identity.matches(name)), None)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize_all(self) -> None:
        for crawler in self._crawlers:
            crawler.initialize_components()

    async def release_all(self) -> None:
        """Release every crawler, even if one of them fails to close."""
        for crawler in self._crawlers:
            try:
                await crawler.release_components()
            except Exception as exc:
                logfire.error(
                    "Releasing crawler failed",
                    site=crawler.identity.internal_name,
                    error=str(exc),
                )

    def initialize_crawler(self, name: str) -> None:
        crawler = self.get(name)
        if crawler is not None:
            crawler.initialize_components()

    async def release_crawler(self, name: str) -> None:
        crawler = self.get(name)
        if crawler is not None:
            await crawler.release_components()

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run_all(self, store: ArchiveStore) -> Dict[str, CrawlReport]:
        """Run every crawler once, one after another.

        An unexpected exception from one crawler is logged and recorded in
        its report; the remaining crawlers still run.  Cancellation is not
        caught.
        """
        reports: Dict[str, CrawlReport] = {}
        for crawler in self._crawlers:
            name = crawler.identity.internal_name
            try:
                reports[name] = await crawler.run(store)
            except Exception as exc:
                logfire.error("Crawler run failed", site=name, error=str(exc))
                reports[name] = CrawlReport(site=name, errors=[str(exc)])
        return reports
