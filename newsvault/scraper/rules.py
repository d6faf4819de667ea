"""Per-site extraction rules.

Two kinds of rule drive a site's crawl:

* :class:`ListingRule` decides which anchors on a listing page count as
  article links.  A single in-page routine (:data:`COLLECT_ANCHORS_JS`) is
  parameterised by the rule, and :meth:`ListingRule.accepts_url` /
  :meth:`ListingRule.accepts_title` mirror the same checks in Python for the
  post-processing pass.
* :class:`ContentRule` variants pull the article body, images, publisher and
  publish time out of a loaded article page.  Each site picks exactly one
  variant in its profile (see :mod:`newsvault.crawlers.sites`).
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional, Tuple
from urllib.parse import urlsplit

import trafilatura

from newsvault.scraper.models import PageExtract

_WS_RE = re.compile(r"\s+")


def normalize_title(value: Optional[str]) -> str:
    """Collapse every run of whitespace (newlines included) to one space and trim."""
    if not value or not value.strip():
        return ""
    return _WS_RE.sub(" ", value).strip()


class OnAllFiltered(Enum):
    """What to return when the banned-title filter removes every link."""

    RETURN_UNFILTERED = "return_unfiltered"
    RETURN_EMPTY = "return_empty"


# ---------------------------------------------------------------------------
# Listing rules
# ---------------------------------------------------------------------------

COLLECT_ANCHORS_JS = r"""
(opts) => {
    const out = [];
    const prefixes = opts.urlPrefixes || [];
    const skipHashes = opts.skipHashes || [];
    const skipSuffixes = opts.skipUrlSuffixes || [];
    const skipFragments = opts.skipPathFragments || [];
    const noise = opts.noiseTitlePattern ? new RegExp(opts.noiseTitlePattern) : null;

    for (const a of document.querySelectorAll('a[href]')) {
        const raw = (a.getAttribute('href') || '').trim();
        if (!raw) continue;

        let parsed;
        try { parsed = new URL(raw, document.baseURI); } catch (e) { continue; }

        const href = parsed.href;
        const lower = href.toLowerCase();
        if (!(lower.startsWith('http://') || lower.startsWith('https://'))) continue;
        if (prefixes.length && !prefixes.some(p => href.startsWith(p))) continue;

        if (skipHashes.includes((parsed.hash || '').toLowerCase())) continue;
        const noHash = parsed.origin + parsed.pathname + parsed.search;
        if (skipSuffixes.some(s => noHash.endsWith(s))) continue;
        const path = parsed.pathname.toLowerCase();
        if (skipFragments.some(f => path.includes(f))) continue;

        const title = (a.textContent || '').replace(/\s+/g, ' ').trim();
        if (!title) continue;
        if (noise && noise.test(title)) continue;

        out.push({ title: title, url: href });
    }
    return out;
}
"""


@dataclass(frozen=True)
class ListingRule:
    """Which anchors on a site's listing page are article links."""

    url_prefixes: Tuple[str, ...] = ()
    skip_hashes: Tuple[str, ...] = ()
    skip_url_suffixes: Tuple[str, ...] = ()
    skip_path_fragments: Tuple[str, ...] = ()
    noise_title_pattern: Optional[str] = None
    banned_titles: FrozenSet[str] = frozenset()
    on_all_filtered: OnAllFiltered = OnAllFiltered.RETURN_UNFILTERED
    scroll_pages: int = 0
    wait_for_anchors: bool = False

    def __post_init__(self) -> None:
        # Banned titles are compared after normalisation.
        object.__setattr__(
            self,
            "banned_titles",
            frozenset(normalize_title(t) for t in self.banned_titles),
        )

    def as_script_options(self) -> Dict[str, Any]:
        """Options object handed to :data:`COLLECT_ANCHORS_JS`."""
        return {
            "urlPrefixes": list(self.url_prefixes),
            "skipHashes": [h.lower() for h in self.skip_hashes],
            "skipUrlSuffixes": list(self.skip_url_suffixes),
            "skipPathFragments": [f.lower() for f in self.skip_path_fragments],
            "noiseTitlePattern": self.noise_title_pattern,
        }

    def accepts_url(self, url: str) -> bool:
        lower = url.lower()
        if not (lower.startswith("http://") or lower.startswith("https://")):
            return False
        if self.url_prefixes and not url.startswith(self.url_prefixes):
            return False

        parts = urlsplit(url)
        fragment = f"#{parts.fragment}".lower() if parts.fragment else ""
        if fragment and fragment in [h.lower() for h in self.skip_hashes]:
            return False
        no_hash = url.split("#", 1)[0]
        if any(no_hash.endswith(s) for s in self.skip_url_suffixes):
            return False
        path = parts.path.lower()
        return not any(f.lower() in path for f in self.skip_path_fragments)

    def accepts_title(self, title: str) -> bool:
        if not title:
            return False
        if self.noise_title_pattern and re.search(self.noise_title_pattern, title):
            return False
        return True

    def is_banned(self, title: str) -> bool:
        return normalize_title(title) in self.banned_titles


# Footer, legal and navigation boilerplate seen on toutiao.com.
TOUTIAO_BANNED_TITLES = frozenset(
    {
        "直播",
        "懂车帝",
        "下载头条APP",
        "关于头条",
        "侵权投诉",
        "凤凰卫视",
        "懂车时间",
        "驾享来电",
        "Yo哥真帅！（Yoko视频工作室）",
        "君子游网上围棋教室",
        "扫黄打非网上举报",
        "网络谣言曝光台",
        "网上有害信息举报",
        "侵权举报受理公示",
        "京ICP证140141号",
        "京ICP备12025439号-3",
        "网络文化经营许可证 京网文〔2023〕3628-111号",
        "营业执照",
        "广播电视节目制作经营许可证",
        "出版物经营许可证",
        "营业性演出许可证",
        "药品医疗器械网络信息服务备案编号：（京）网药械信息备字（2023）第00006号",
        "跟帖评论自律管理承诺书",
        "京公网安备 11000002002023号",
        "网信算备110108823483902220017号",
        "网信算备110108823483904220019号",
        "网信算备110108823483903230017号",
        "互联网宗教信息服务许可证：京（2025）0000021",
        "加入头条",
        "用户协议",
        "隐私政策",
        "媒体合作",
        "广告合作",
        "友情链接",
        "媒体报道",
        "产品合作",
        "头条MCN",
        "联系我们",
        "廉洁举报",
        "企业认证",
        "免责声明",
        "下载今日头条APP",
    }
)

# Forum-software chrome and spam anchors common on generic static pages.
STATIC_BANNED_TITLES = TOUTIAO_BANNED_TITLES | frozenset(
    {
        "注册",
        "登录",
        "发布器",
        "首页",
        "清除 Cookies",
        "Archiver",
        "WAP",
    }
)

TOUTIAO_LISTING = ListingRule(
    url_prefixes=("https://www.toutiao.com/article/",),
    skip_hashes=("#comment",),
    skip_url_suffixes=("/?source=feed",),
    skip_path_fragments=("/video",),
    noise_title_pattern=r"^\d+\s*评论$",
    banned_titles=TOUTIAO_BANNED_TITLES,
    on_all_filtered=OnAllFiltered.RETURN_UNFILTERED,
    scroll_pages=10,
    wait_for_anchors=True,
)

NETEASE_LISTING = ListingRule(
    url_prefixes=(
        "https://www.163.com/dy/article/",
        "https://www.163.com/news/article/",
    ),
    on_all_filtered=OnAllFiltered.RETURN_EMPTY,
)

STATIC_LISTING = ListingRule(
    banned_titles=STATIC_BANNED_TITLES,
    on_all_filtered=OnAllFiltered.RETURN_UNFILTERED,
)


# ---------------------------------------------------------------------------
# Content rules
# ---------------------------------------------------------------------------

_IMAGE_ATTRS = ("src", "data-src", "data-original", "data-actualsrc")

# Shared in-page helper: unique image sources under ``root``, order preserved.
_COLLECT_IMAGES_JS = """
    const uniq = (arr) => Array.from(new Set(arr));
    const imgs = uniq(
        Array.from(root.querySelectorAll('img'))
            .map(img => img.getAttribute('src')
                        || img.getAttribute('data-src')
                        || img.getAttribute('data-original')
                        || img.getAttribute('data-actualsrc')
                        || '')
            .filter(Boolean)
    );
"""

_EMPTY_EXTRACT_JS = "{ text: '', html: '', images: [], publishTime: '', publisher: '' }"


class ContentRule:
    """Extracts structured article content from a loaded page."""

    kind: ClassVar[str] = "base"

    async def extract(self, page: Any) -> PageExtract:
        raise NotImplementedError


@dataclass(frozen=True)
class PostInfoContentRule(ContentRule):
    """Article body under ``root``; an info line carries time, then source anchor."""

    kind: ClassVar[str] = "post_info"

    root_selector: str = "div.post_main"
    info_selector: str = "div.post_info"
    source_marker: str = "　来源:"

    script: ClassVar[str] = (
        """
(opts) => {
    const root = document.querySelector(opts.root);
    if (!root) return %s;

    let publishTime = '';
    let publisher = '';
    const info = root.querySelector(opts.info);
    if (info) {
        const infoText = (info.textContent || '').trim();
        const m = infoText.match(/^\\s*(\\d{4}-\\d{2}-\\d{2}\\s+\\d{2}:\\d{2}(?::\\d{2})?)/);
        if (m && m[1]) {
            publishTime = m[1].trim();
        } else {
            const idx = infoText.indexOf(opts.sourceMarker);
            if (idx > 0) publishTime = infoText.substring(0, idx).trim();
        }
        const a = info.querySelector('a');
        if (a) publisher = (a.innerText || '').trim();
    }
%s
    const text = (root.innerText || '').trim();
    const html = root.innerHTML || '';
    return { text, html, images: imgs, publishTime, publisher };
}
"""
        % (_EMPTY_EXTRACT_JS, _COLLECT_IMAGES_JS)
    )

    async def extract(self, page: Any) -> PageExtract:
        raw = await page.evaluate(
            self.script,
            {
                "root": self.root_selector,
                "info": self.info_selector,
                "sourceMarker": self.source_marker,
            },
        )
        return PageExtract.from_raw(raw)


@dataclass(frozen=True)
class ArticleMetaContentRule(ContentRule):
    """Article body under ``root``; a meta row of spans holds time and publisher."""

    kind: ClassVar[str] = "article_meta"

    root_selector: str = "div.article-content"
    meta_selector: str = "div.article-meta"
    time_span_index: int = 0
    publisher_span_index: int = 2

    script: ClassVar[str] = (
        """
(opts) => {
    const root = document.querySelector(opts.root);
    if (!root) return %s;

    const meta = root.querySelector(opts.meta);
    const spans = meta ? Array.from(meta.querySelectorAll('span')) : [];
    const pick = (i) => ((spans[i] && spans[i].innerText) || '').trim();
    const publishTime = pick(opts.timeIndex);
    const publisher = pick(opts.publisherIndex);
%s
    const text = (root.innerText || '').trim();
    const html = root.innerHTML || '';
    return { text, html, images: imgs, publishTime, publisher };
}
"""
        % (_EMPTY_EXTRACT_JS, _COLLECT_IMAGES_JS)
    )

    async def extract(self, page: Any) -> PageExtract:
        raw = await page.evaluate(
            self.script,
            {
                "root": self.root_selector,
                "meta": self.meta_selector,
                "timeIndex": self.time_span_index,
                "publisherIndex": self.publisher_span_index,
            },
        )
        return PageExtract.from_raw(raw)


_PUBLISH_META = (
    "article:published_time",
    "og:article:published_time",
    "pubdate",
    "publishdate",
    "publish_date",
    "date",
)
_PUBLISHER_META = ("og:site_name", "article:author", "author", "publisher")


def _meta_content(soup: Any, names: Tuple[str, ...]) -> str:
    for name in names:
        tag = soup.find("meta", attrs={"property": name}) or soup.find(
            "meta", attrs={"name": name}
        )
        if tag is not None and tag.get("content"):
            return str(tag["content"]).strip()
    return ""


def _readable_text(html: str, url: str) -> str:
    """Body text via trafilatura, with a BeautifulSoup heuristic fallback."""
    text: Optional[str] = trafilatura.extract(
        html,
        include_links=False,
        include_images=False,
        include_tables=True,
        no_fallback=False,
        url=url,
    )
    if text:
        return text

    from bs4 import BeautifulSoup  # noqa: PLC0415

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "nav", "footer", "header"]):
        tag.decompose()
    container = soup.find("main") or soup.find("article") or soup.body
    if container is None:
        return soup.get_text(separator=" ", strip=True)
    return container.get_text(separator=" ", strip=True)


@dataclass(frozen=True)
class ReadableContentRule(ContentRule):
    """Site-agnostic readability extraction for plain static article pages."""

    kind: ClassVar[str] = "readable"

    def parse_html(self, html: str, url: str) -> PageExtract:
        from bs4 import BeautifulSoup  # noqa: PLC0415

        soup = BeautifulSoup(html, "html.parser")
        container = soup.find("article") or soup.find("main") or soup.body or soup

        images: List[str] = []
        for img in container.find_all("img"):
            src = next((img.get(a) for a in _IMAGE_ATTRS if img.get(a)), "")
            if src and src not in images:
                images.append(str(src))

        return PageExtract(
            text=_readable_text(html, url).strip(),
            html=str(container),
            images=images,
            publisher=_meta_content(soup, _PUBLISHER_META),
            publish_time=_meta_content(soup, _PUBLISH_META),
        )

    async def extract(self, page: Any) -> PageExtract:
        html = await page.content()
        # Parsing is CPU-bound and runs on a worker thread.
        return await asyncio.to_thread(self.parse_html, html, page.url)
