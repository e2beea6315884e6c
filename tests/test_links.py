from types import SimpleNamespace

from helpers import add_folder, add_link
from linksaver.models import Link
from linksaver.services.assets import LinkAssetStore
from linksaver.services.links import (
    create_link,
    delete_link,
    extract_share_data,
    group_links_by_domain,
    load_favicon,
    load_preview_image,
    save_shared_link,
)


def test_create_link_normalizes_url_and_assigns_identity():
    link = create_link(" example.com/article ", title="Article")

    assert link is not None
    assert link.url == "https://example.com/article"
    assert link.title == "Article"
    assert link.id is not None
    assert link.is_favorite is False
    assert link.metadata_fetched is False
    assert create_link("has spaces in it") is None


def test_extract_share_data():
    assert extract_share_data("news.ycombinator.com", "HN") == ("https://news.ycombinator.com", "HN")
    assert extract_share_data(None, "Nothing") is None
    assert extract_share_data("  ", None) is None


def test_save_shared_link_reuses_existing_link(destination_store):
    folder = add_folder(destination_store, "Inbox")
    existing = add_link(destination_store, "https://example.com", folder=folder, title="Existing")
    destination_store.save()

    again = save_shared_link(destination_store, "example.com", title="Shared")
    created = save_shared_link(destination_store, "https://other.example", title="Other")

    assert again.id == existing.id
    assert again.title == "Existing"
    assert created.title == "Other"
    assert sorted(link.url for link in destination_store.fetch_all(Link)) == [
        "https://example.com",
        "https://other.example",
    ]
    assert save_shared_link(destination_store, "bad url here") is None


def test_delete_link_removes_record_and_assets(destination_store, tmp_path):
    assets = LinkAssetStore(tmp_path)
    link = add_link(destination_store, "https://gone.example")
    destination_store.save()
    assets.save_assets(link.id, favicon=b"icon", preview_image=b"preview")

    delete_link(destination_store, link, assets)

    assert destination_store.fetch_all(Link) == []
    assert assets.load_favicon(link.id) is None
    assert assets.load_preview_image(link.id) is None


def test_asset_lookup_prefers_asset_store_over_inline_columns(tmp_path):
    assets = LinkAssetStore(tmp_path)
    link = create_link("https://example.com")
    link.favicon = b"inline-icon"
    link.preview_image = b"inline-preview"

    assert load_favicon(link, assets) == b"inline-icon"
    assert load_preview_image(link, assets) == b"inline-preview"

    assets.save_assets(link.id, favicon=b"cached-icon")
    assert load_favicon(link, assets) == b"cached-icon"


def test_group_links_by_domain_sorts_named_domains_before_unknown():
    links = [
        SimpleNamespace(url="https://b.example/1", domain="B.example"),
        SimpleNamespace(url="garbage", domain=None),
        SimpleNamespace(url="https://a.example", domain="a.example"),
        SimpleNamespace(url="https://b.example/2", domain="b.example "),
    ]

    groups = group_links_by_domain(links)

    assert [group.domain for group in groups] == ["a.example", "b.example", None]
    assert [link.url for link in groups[1].links] == ["https://b.example/1", "https://b.example/2"]
    assert groups[-1].id == "__unknown__"
