"""Image download helpers for the content archiver."""

from __future__ import annotations

import base64
import binascii
import posixpath
from pathlib import Path
from typing import Iterable, Optional, Tuple
from urllib.parse import unquote_to_bytes, urljoin, urlsplit

import httpx
import logfire

_MIME_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}

_FALLBACK_EXTENSION = ".img"


def mime_to_extension(mime: str) -> str:
    """Map an image MIME type to a file extension (``.img`` when unknown)."""
    return _MIME_EXTENSIONS.get(mime.strip().lower(), _FALLBACK_EXTENSION)


def decode_data_url(data_url: str) -> Optional[Tuple[bytes, str]]:
    """Decode ``data:[mime][;base64],payload``.

    Returns:
        ``(payload_bytes, extension)`` or ``None`` when the URL is malformed.
    """
    comma = data_url.find(",")
    if comma <= 0:
        return None

    meta, payload = data_url[:comma], data_url[comma + 1:]
    is_base64 = meta.lower().endswith(";base64")
    header = meta.split(":", 1)[1] if ":" in meta else ""
    mime = header.split(";", 1)[0] or "application/octet-stream"

    try:
        if is_base64:
            data = base64.b64decode(payload, validate=True)
        else:
            data = unquote_to_bytes(payload)
    except (binascii.Error, ValueError):
        return None
    return data, mime_to_extension(mime)


def to_absolute_url(page_url: str, src: str) -> Optional[str]:
    """Resolve an image ``src`` against the page it came from.

    Handles absolute, protocol-relative (``//host/path``) and relative forms.
    Returns ``None`` for blank or unparseable sources.
    """
    if not src or not src.strip():
        return None
    src = src.strip()

    try:
        if src.startswith("//"):
            scheme = urlsplit(page_url).scheme or "https"
            return f"{scheme}:{src}"

        if urlsplit(src).scheme:
            return src

        if not urlsplit(page_url).scheme:
            return None
        return urljoin(page_url, src)
    except ValueError:
        return None


def _extension_from_url(url: str) -> str:
    ext = posixpath.splitext(urlsplit(url).path)[1]
    if not ext or len(ext) > 6:
        return _FALLBACK_EXTENSION
    return ext


async def download_images(
    client: httpx.AsyncClient,
    page_url: str,
    sources: Iterable[str],
    folder: Path,
) -> int:
    """Save every distinct image in *sources* into *folder*.

    Files are numbered ``img_001``, ``img_002``, … in source order.  A
    failed image is logged and its number reused, so the files on disk stay
    contiguously numbered.  No single failure aborts the batch.

    Returns:
        The number of images written.
    """
    count = 0
    for src in dict.fromkeys(sources):
        if src.lower().startswith("data:"):
            decoded = decode_data_url(src)
            if decoded is None:
                continue
            data, ext = decoded
            count += 1
            try:
                (folder / f"img_{count:03d}{ext}").write_bytes(data)
            except OSError as exc:
                logfire.warning("Inline image write failed", error=str(exc))
                count -= 1
            continue

        count += 1
        try:
            absolute = to_absolute_url(page_url, src)
            if absolute is None or urlsplit(absolute).scheme.lower() not in ("http", "https"):
                count -= 1
                continue
            path = folder / f"img_{count:03d}{_extension_from_url(absolute)}"
            response = await client.get(absolute)
            response.raise_for_status()
            path.write_bytes(response.content)
        except Exception as exc:
            # Any per-image failure frees its number; cancellation still propagates.
            logfire.warning("Image download failed", src=src, error=str(exc))
            count -= 1

    return max(count, 0)
