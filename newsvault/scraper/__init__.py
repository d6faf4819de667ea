"""Scraper package: link discovery and article archiving."""

from newsvault.scraper.archiver import ContentArchiver
from newsvault.scraper.link_extractor import ExtractorClosedError, LinkExtractor
from newsvault.scraper.models import ArchiveResult, ExtractionStatus, Link, PageExtract
from newsvault.scraper.session import BrowserSession

__all__ = [
    "ArchiveResult",
    "BrowserSession",
    "ContentArchiver",
    "ExtractionStatus",
    "ExtractorClosedError",
    "Link",
    "LinkExtractor",
    "PageExtract",
]
