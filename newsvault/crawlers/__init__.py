"""Crawl pipeline: per-site crawlers, their registry and the periodic driver.

Typical wiring, as done by the CLI::

    registry = CrawlerRegistry.from_settings(settings, classifier)
    registry.initialize_all()
    orchestrator = CrawlOrchestrator(registry, ArchiveStore(conn))
    await orchestrator.run()
"""

from newsvault.crawlers.base import (
    Crawler,
    CrawlerIdentity,
    CrawlReport,
    SiteProfile,
)
from newsvault.crawlers.orchestrator import CrawlOrchestrator, OrchestratorState
from newsvault.crawlers.registry import CrawlerRegistry
from newsvault.crawlers.sites import NETEASE, SITES, TOUTIAO, get_site, static_profile

__all__ = [
    "CrawlOrchestrator",
    "CrawlReport",
    "Crawler",
    "CrawlerIdentity",
    "CrawlerRegistry",
    "NETEASE",
    "OrchestratorState",
    "SITES",
    "SiteProfile",
    "TOUTIAO",
    "get_site",
    "static_profile",
]
