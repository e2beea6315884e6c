from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from linksaver.models import Folder, Link
from linksaver.services.assets import LinkAssetStore
from linksaver.services.common import normalize_url, url_key
from linksaver.store import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class LinkDomainGroup:
    domain: str | None
    links: list[Link]

    @property
    def id(self) -> str:
        return self.domain or "__unknown__"


def create_link(url: str, title: str | None = None, folder: Folder | None = None) -> Link | None:
    normalized = normalize_url(url)
    if not normalized:
        return None
    return Link(
        id=uuid.uuid4(),
        url=normalized,
        title=title,
        folder=folder,
        is_favorite=False,
        is_pinned=False,
        metadata_fetched=False,
    )


def extract_share_data(url: str | None, title: str | None) -> tuple[str, str | None] | None:
    normalized = normalize_url(url)
    if not normalized:
        return None
    return normalized, title


def save_shared_link(store: RecordStore, url: str | None, title: str | None = None) -> Link | None:
    shared = extract_share_data(url, title)
    if shared is None:
        return None
    shared_url, shared_title = shared

    key = url_key(shared_url)
    for existing in store.fetch_all(Link):
        if url_key(existing.url) == key:
            return existing

    link = create_link(shared_url, title=shared_title)
    store.insert(link)
    store.save()
    return link


def delete_link(store: RecordStore, link: Link, assets: LinkAssetStore) -> None:
    link_id = link.id
    store.delete(link)
    store.save()
    assets.delete_assets(link_id)
    logger.debug("Deleted link %s and its assets", link_id)


def load_favicon(link: Link, assets: LinkAssetStore) -> bytes | None:
    return assets.load_favicon(link.id) or link.favicon


def load_preview_image(link: Link, assets: LinkAssetStore) -> bytes | None:
    return assets.load_preview_image(link.id) or link.preview_image


def group_links_by_domain(links) -> list[LinkDomainGroup]:
    grouped: dict[str | None, list[Link]] = {}
    for link in links:
        domain = (link.domain or "").strip().lower() or None
        grouped.setdefault(domain, []).append(link)

    named = sorted(
        (LinkDomainGroup(domain=domain, links=items) for domain, items in grouped.items() if domain),
        key=lambda group: group.domain,
    )
    if None in grouped:
        named.append(LinkDomainGroup(domain=None, links=grouped[None]))
    return named
