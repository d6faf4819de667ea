"""Data models for the crawl pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional


@dataclass(frozen=True)
class Link:
    """An anchor discovered on a listing page."""

    title: Optional[str]
    url: Optional[str]

    def __str__(self) -> str:
        return f"{self.title} -> {self.url}"


class ExtractionStatus(Enum):
    """Outcome of one link-discovery attempt."""

    SUCCESS = "success"
    NAVIGATION_FAILED = "navigation_failed"  # timeout or non-2xx response
    NO_LINKS = "no_links"
    ERROR = "error"


@dataclass(frozen=True)
class ArchiveResult:
    """The outcome of archiving a single link.

    ``error`` is ``None`` on success.  ``output_folder`` is empty and
    ``image_count`` is zero whenever nothing was written to disk.
    """

    title: str
    url: str
    output_folder: str
    image_count: int
    text_length: int
    content: str = ""
    publisher: Optional[str] = None
    publish_time: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, link: Link, error: str) -> ArchiveResult:
        """Zeroed result carrying *error* for *link*."""
        return cls(
            title=link.title or "",
            url=link.url or "",
            output_folder="",
            image_count=0,
            text_length=0,
            content="",
            error=error,
        )


@dataclass
class PageExtract:
    """Structured content returned by a content rule for one article page."""

    text: str = ""
    html: str = ""
    images: List[str] = field(default_factory=list)
    publisher: str = ""
    publish_time: str = ""

    @classmethod
    def from_raw(cls, raw: Optional[dict[str, Any]]) -> PageExtract:
        """Build from the loosely-typed dict returned by ``page.evaluate``."""
        if not raw:
            return cls()
        images = raw.get("images") or []
        return cls(
            text=raw.get("text") or "",
            html=raw.get("html") or "",
            images=[str(src) for src in images if src],
            publisher=(raw.get("publisher") or "").strip(),
            publish_time=(raw.get("publishTime") or raw.get("publish_time") or "").strip(),
        )
