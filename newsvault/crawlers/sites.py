"""Built-in site profiles."""

from __future__ import annotations

from typing import Dict, Optional
from urllib.parse import urlparse

from newsvault.crawlers.base import CrawlerIdentity, SiteProfile
from newsvault.scraper.rules import (
    NETEASE_LISTING,
    STATIC_LISTING,
    TOUTIAO_LISTING,
    ArticleMetaContentRule,
    PostInfoContentRule,
    ReadableContentRule,
)

TOUTIAO = SiteProfile(
    identity=CrawlerIdentity(
        url="https://www.toutiao.com",
        friendly_name="今日头条",
        internal_name="toutiao",
    ),
    listing_rule=TOUTIAO_LISTING,
    content_rule=ArticleMetaContentRule(),
    discovery_pages=10,
    refresh_after_run=True,
)

NETEASE = SiteProfile(
    identity=CrawlerIdentity(
        url="https://www.163.com",
        friendly_name="网易",
        internal_name="netease",
    ),
    listing_rule=NETEASE_LISTING,
    content_rule=PostInfoContentRule(),
)

SITES: Dict[str, SiteProfile] = {p.name: p for p in (TOUTIAO, NETEASE)}


def static_profile(url: str, name: Optional[str] = None) -> SiteProfile:
    """Generic profile for a plain, server-rendered listing page.

    Raises:
        ValueError: If *url* is not an absolute http(s) URL.
    """
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Not an absolute http(s) URL: {url!r}")

    internal = name or parsed.netloc.lower()
    return SiteProfile(
        identity=CrawlerIdentity(url=url, friendly_name=internal, internal_name=internal),
        listing_rule=STATIC_LISTING,
        content_rule=ReadableContentRule(),
        discovery_pages=0,
    )


def get_site(name: str) -> SiteProfile:
    """Look up a built-in profile by internal name (case-insensitive).

    Raises:
        KeyError: If no built-in site has that name.
    """
    key = (name or "").strip().lower()
    if key not in SITES:
        raise KeyError(f"Unknown site {name!r}; known sites: {', '.join(SITES)}")
    return SITES[key]
