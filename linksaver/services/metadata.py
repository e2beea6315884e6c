from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

from linksaver.models import Link, utcnow
from linksaver.services.assets import LinkAssetStore
from linksaver.services.common import favicon_service_url, normalize_url

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "LinkSaverBot/1.0 (+https://linksaver.local)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

_ICON_RELS = ("icon", "shortcut icon", "apple-touch-icon", "apple-touch-icon-precomposed")


@dataclass
class LinkMetadataResult:
    url: str
    title: str | None = None
    description: str | None = None
    favicon: bytes | None = None
    preview_image: bytes | None = None


@dataclass
class PageMetadata:
    title: str | None
    description: str | None
    icon_url: str | None
    image_url: str | None


def _read_capped(response: httpx.Response, max_bytes: int) -> tuple[bytes, bool]:
    """Body bytes up to ``max_bytes``, and whether the rest was cut off."""
    chunks = []
    total = 0
    for chunk in response.iter_bytes():
        total += len(chunk)
        if total > max_bytes:
            return b"".join(chunks), True
        chunks.append(chunk)
    return b"".join(chunks), False


def fetch_html(client: httpx.Client, url: str, max_bytes: int) -> tuple[str, str]:
    with client.stream("GET", url) as response:
        response.raise_for_status()
        data, _truncated = _read_capped(response, max_bytes)
        encoding = response.encoding or "utf-8"
        return data.decode(encoding, errors="ignore"), str(response.url)


def fetch_image(client: httpx.Client, url: str, max_bytes: int) -> bytes | None:
    try:
        with client.stream("GET", url) as response:
            if response.status_code >= 400:
                return None
            data, truncated = _read_capped(response, max_bytes)
    except httpx.HTTPError as exc:
        logger.debug("Image fetch failed for %s: %s", url, exc)
        return None
    if truncated:
        # partial image data is unusable
        logger.debug("Image at %s exceeds %d bytes, skipping", url, max_bytes)
        return None
    return data or None


def _meta_content(soup: BeautifulSoup, *names: str) -> str | None:
    for name in names:
        tag = soup.find("meta", attrs={"property": name}) or soup.find(
            "meta", attrs={"name": name}
        )
        if tag is None:
            continue
        content = (tag.get("content") or "").strip()
        if content:
            return content
    return None


def _icon_href(soup: BeautifulSoup) -> str | None:
    for link in soup.find_all("link"):
        rel = link.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        rel_text = " ".join(r.lower() for r in rel)
        href = (link.get("href") or "").strip()
        if href and rel_text in _ICON_RELS:
            return href
    return None


def extract_page_metadata(html: str, base_url: str) -> PageMetadata:
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
        soup = BeautifulSoup(html, "lxml")

    title = _meta_content(soup, "og:title", "twitter:title")
    if not title and soup.title and soup.title.string:
        title = soup.title.string.strip() or None

    description = _meta_content(soup, "og:description", "description", "twitter:description")
    image = _meta_content(soup, "og:image", "og:image:url", "twitter:image")
    icon = _icon_href(soup)

    return PageMetadata(
        title=title,
        description=description,
        icon_url=urljoin(base_url, icon) if icon else None,
        image_url=urljoin(base_url, image) if image else None,
    )


def fetch_metadata(url: str, timeout: float, max_bytes: int) -> LinkMetadataResult:
    """Fetch title, description, favicon and preview image for ``url``.

    Raises ``httpx.HTTPError`` when the page itself cannot be fetched; a
    missing favicon or preview image is not an error.
    """
    with httpx.Client(
        follow_redirects=True, timeout=timeout, headers=DEFAULT_HEADERS
    ) as client:
        html, final_url = fetch_html(client, url, max_bytes)
        page = extract_page_metadata(html, final_url)

        result = LinkMetadataResult(url=final_url, title=page.title, description=page.description)

        icon_url = page.icon_url or favicon_service_url(final_url)
        if icon_url:
            result.favicon = fetch_image(client, icon_url, max_bytes)
        if result.favicon is None and page.icon_url:
            fallback = favicon_service_url(final_url)
            if fallback:
                result.favicon = fetch_image(client, fallback, max_bytes)
        if page.image_url:
            result.preview_image = fetch_image(client, page.image_url, max_bytes)
    return result


def fetch_and_update_metadata(
    link: Link, assets: LinkAssetStore, timeout: float, max_bytes: int
) -> bool:
    url = normalize_url(link.url)
    if not url:
        return False

    link.last_metadata_fetch_attempt = utcnow()
    try:
        metadata = fetch_metadata(url, timeout=timeout, max_bytes=max_bytes)
    except httpx.HTTPError as exc:
        logger.warning("Failed to fetch metadata for %s: %s", link.url, exc)
        return False

    existing_title = (link.title or "").strip()
    fetched_title = (metadata.title or "").strip()
    if not existing_title and fetched_title:
        link.title = fetched_title
    link.link_description = metadata.description
    assets.save_assets(
        link.id, favicon=metadata.favicon, preview_image=metadata.preview_image
    )
    link.metadata_fetched = True
    return True
