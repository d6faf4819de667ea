"""Article archiving: turns discovered :class:`Link` s into :class:`ArchiveResult` s.

For every link the archiver opens a fresh browser page, lets the site's
:class:`~newsvault.scraper.rules.ContentRule` pull out the body text, images
and metadata, and (optionally) writes the text and images to disk::

    <output_root>/<safe title[:60]>_<short hash of url>/
        content.txt
        img_001.jpg
        img_002.png
        ...

A failure on one link is recorded on that link's result and never aborts the
rest of the batch.
"""

from __future__ import annotations

import hashlib
from datetime import datetime
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union

import httpx
import logfire

from newsvault.config import settings
from newsvault.scraper.images import download_images
from newsvault.scraper.models import ArchiveResult, Link
from newsvault.scraper.rules import ContentRule
from newsvault.scraper.session import BrowserSession, SessionFactory

_MAX_TITLE_CHARS = 60

# Characters that are not allowed in file names on at least one major OS.
_INVALID_FILENAME_CHARS = frozenset('<>:"/\\|?*') | frozenset(chr(i) for i in range(32))

# Formats commonly used by Chinese news sites, tried before the generic parsers.
_LOCAL_TIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y年%m月%d日 %H:%M:%S",
    "%Y年%m月%d日 %H:%M",
    "%Y年%m月%d日%H:%M",
    "%Y年%m月%d日",
    "%Y-%m-%d",
    "%Y/%m/%d",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def short_hash(value: str) -> str:
    """12 hex characters: the first 6 bytes of the SHA-256 of *value*."""
    return hashlib.sha256(value.encode("utf-8")).digest()[:6].hex().upper()


def make_file_name_safe(name: str) -> str:
    """Replace characters that are invalid in file names with ``_``."""
    cleaned = "".join("_" if ch in _INVALID_FILENAME_CHARS else ch for ch in name).strip()
    return cleaned or "untitled"


def folder_name_for(link: Link) -> str:
    """Readable, collision-resistant folder name for *link*."""
    title = (link.title or "").strip() or "untitled"
    safe = make_file_name_safe(title)[:_MAX_TITLE_CHARS]
    return f"{safe}_{short_hash(link.url or '')}"


def parse_publish_time(value: Optional[str]) -> Optional[datetime]:
    """Parse a publish time scraped from a page.

    Site-local formats are tried first (naive values are taken as local
    time), then ISO-8601 and RFC 2822.  Anything else yields ``None``.
    """
    if not value or not value.strip():
        return None
    text = " ".join(value.split())

    for fmt in _LOCAL_TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).astimezone()
        except ValueError:
            continue

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            return None

    return parsed if parsed.tzinfo is not None else parsed.astimezone()


def unique_links(links: Iterable[Link]) -> List[Link]:
    """Links with a non-blank URL, first occurrence per URL, order kept."""
    seen: set[str] = set()
    out: List[Link] = []
    for link in links:
        if not link.url or not link.url.strip():
            continue
        if link.url in seen:
            continue
        seen.add(link.url)
        out.append(link)
    return out


# ---------------------------------------------------------------------------
# Archiver
# ---------------------------------------------------------------------------

class ContentArchiver:
    """Archives article links for one site."""

    def __init__(
        self,
        rule: ContentRule,
        session_factory: Optional[SessionFactory] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        name: Optional[str] = None,
    ) -> None:
        self._rule = rule
        self._session_factory = session_factory or BrowserSession
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            headers={"User-Agent": settings.user_agent},
            timeout=settings.http_timeout,
            follow_redirects=True,
        )
        self._name = name or rule.kind
        self._closed = False

    @property
    def rule(self) -> ContentRule:
        return self._rule

    async def archive(
        self,
        links: Iterable[Link],
        output_root: Optional[Union[str, Path]] = None,
        navigation_timeout_ms: Optional[int] = None,
    ) -> List[ArchiveResult]:
        """Archive every link in *links*.

        Args:
            links: Links to archive.  Blank URLs are skipped and duplicates
                (by URL) collapsed, keeping the first occurrence.
            output_root: Folder to write text and images into.  ``None``
                extracts only; nothing touches the disk.
            navigation_timeout_ms: Per-page navigation timeout.

        Returns:
            One result per surviving link, in input order.

        Raises:
            ValueError: If *output_root* is given but blank.
        """
        root: Optional[Path] = None
        if output_root is not None:
            if not str(output_root).strip():
                raise ValueError("output_root cannot be blank when provided")
            root = Path(output_root)
            root.mkdir(parents=True, exist_ok=True)

        batch = unique_links(links)
        if not batch:
            return []

        timeout = navigation_timeout_ms or settings.navigation_timeout_ms
        results: List[ArchiveResult] = []

        # One browser for the whole batch, one fresh page per link.
        async with self._session_factory() as session:
            for link in batch:
                results.append(await self._archive_link(session, link, root, timeout))

        failed = sum(1 for r in results if not r.ok)
        logfire.info(
            "Archive batch finished",
            site=self._name,
            total=len(results),
            failed=failed,
        )
        return results

    async def archive_one(
        self,
        link: Link,
        output_root: Optional[Union[str, Path]] = None,
        navigation_timeout_ms: Optional[int] = None,
    ) -> ArchiveResult:
        """Archive a single link."""
        results = await self.archive([link], output_root, navigation_timeout_ms)
        return results[0] if results else ArchiveResult.failed(link, "No result")

    async def _archive_link(
        self,
        session: BrowserSession,
        link: Link,
        root: Optional[Path],
        timeout_ms: int,
    ) -> ArchiveResult:
        url = link.url or ""
        page = None
        try:
            page = await session.new_page(timeout_ms)
            await page.goto(url, wait_until="load", timeout=timeout_ms)
            extract = await self._rule.extract(page)
            text = extract.text or ""

            folder = ""
            image_count = 0
            if root is not None:
                target = root / folder_name_for(link)
                target.mkdir(parents=True, exist_ok=True)
                (target / "content.txt").write_text(text, encoding="utf-8")
                image_count = await download_images(
                    self._client, page.url or url, extract.images, target
                )
                folder = str(target.resolve())

            return ArchiveResult(
                title=link.title or "",
                url=url,
                output_folder=folder,
                image_count=image_count,
                text_length=len(text),
                content=text,
                publisher=extract.publisher or None,
                publish_time=parse_publish_time(extract.publish_time),
            )
        except Exception as exc:
            logfire.warning("Archiving link failed", site=self._name, url=url, error=str(exc))
            return ArchiveResult.failed(link, str(exc) or type(exc).__name__)
        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as exc:
                    logfire.debug("Page close failed", url=url, error=str(exc))

    async def close(self) -> None:
        """Close the HTTP client (when owned).  Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> ContentArchiver:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
