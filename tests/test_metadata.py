import uuid
from types import SimpleNamespace

import httpx
import pytest

from linksaver.models import Link
from linksaver.services.assets import LinkAssetStore
from linksaver.services.metadata import (
    LinkMetadataResult,
    extract_page_metadata,
    fetch_and_update_metadata,
    fetch_image,
    fetch_metadata,
)

PAGE = """
<html>
  <head>
    <title> Fallback Title </title>
    <meta property="og:title" content="Open Graph Title">
    <meta name="description" content="A page about things">
    <meta property="og:image" content="/images/preview.png">
    <link rel="shortcut icon" href="/favicon.ico">
  </head>
  <body><p>Hello</p></body>
</html>
"""


def test_extract_page_metadata_prefers_open_graph_and_resolves_urls():
    page = extract_page_metadata(PAGE, "https://example.com/articles/1")

    assert page.title == "Open Graph Title"
    assert page.description == "A page about things"
    assert page.image_url == "https://example.com/images/preview.png"
    assert page.icon_url == "https://example.com/favicon.ico"


def test_extract_page_metadata_falls_back_to_title_tag():
    page = extract_page_metadata(
        "<html><head><title>Plain</title></head></html>", "https://example.com"
    )

    assert page.title == "Plain"
    assert page.description is None
    assert page.icon_url is None
    assert page.image_url is None


def test_fetch_and_update_metadata_fills_empty_title_and_stores_assets(tmp_path, monkeypatch):
    assets = LinkAssetStore(tmp_path)
    link = Link(id=uuid.uuid4(), url="https://example.com", title="  ", metadata_fetched=False)

    monkeypatch.setattr(
        "linksaver.services.metadata.fetch_metadata",
        lambda *_args, **_kwargs: LinkMetadataResult(
            url="https://example.com",
            title="Fetched",
            description="Description",
            favicon=b"icon",
            preview_image=b"preview",
        ),
    )

    assert fetch_and_update_metadata(link, assets, timeout=1, max_bytes=1000) is True
    assert link.title == "Fetched"
    assert link.link_description == "Description"
    assert link.metadata_fetched is True
    assert link.last_metadata_fetch_attempt is not None
    assert link.favicon is None
    assert assets.load_favicon(link.id) == b"icon"
    assert assets.load_preview_image(link.id) == b"preview"


def test_fetch_and_update_metadata_keeps_existing_title(tmp_path, monkeypatch):
    link = Link(id=uuid.uuid4(), url="https://example.com", title="Mine")
    monkeypatch.setattr(
        "linksaver.services.metadata.fetch_metadata",
        lambda *_args, **_kwargs: LinkMetadataResult(url=link.url, title="Theirs"),
    )

    fetch_and_update_metadata(link, LinkAssetStore(tmp_path), timeout=1, max_bytes=1000)

    assert link.title == "Mine"


def test_fetch_and_update_metadata_failure_leaves_link_unfetched(tmp_path, monkeypatch):
    link = Link(id=uuid.uuid4(), url="https://unreachable.example", metadata_fetched=False)

    def _raise(*_args, **_kwargs):
        raise httpx.ConnectError("Name or service not known")

    monkeypatch.setattr("linksaver.services.metadata.fetch_metadata", _raise)

    assert fetch_and_update_metadata(link, LinkAssetStore(tmp_path), timeout=1, max_bytes=1000) is False
    assert link.metadata_fetched is False
    assert link.last_metadata_fetch_attempt is not None


SERVICE_ICON = "https://www.google.com/s2/favicons?domain=example.com&sz=128"


def _page(head=""):
    return f"<html><head><title>Example</title>{head}</head><body></body></html>"


@pytest.fixture
def web(monkeypatch):
    """Routes ``httpx.Client`` requests to a dict of ``url -> httpx.Response``."""
    routes = {}
    requested = []
    real_client = httpx.Client

    def handler(request):
        url = str(request.url)
        requested.append(url)
        if url not in routes:
            return httpx.Response(404)
        return routes[url]

    def _client(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(httpx, "Client", _client)
    return SimpleNamespace(routes=routes, requested=requested)


def test_fetch_metadata_uses_page_icon_and_preview_image(web):
    web.routes["https://example.com/"] = httpx.Response(
        200,
        html=_page(
            '<link rel="icon" href="/static/icon.png">'
            '<meta property="og:image" content="https://cdn.example.com/p.jpg">'
        ),
    )
    web.routes["https://example.com/static/icon.png"] = httpx.Response(200, content=b"page-icon")
    web.routes["https://cdn.example.com/p.jpg"] = httpx.Response(200, content=b"preview")

    result = fetch_metadata("https://example.com/", timeout=1, max_bytes=10_000)

    assert result.title == "Example"
    assert result.favicon == b"page-icon"
    assert result.preview_image == b"preview"
    assert SERVICE_ICON not in web.requested


def test_fetch_metadata_falls_back_to_favicon_service_when_page_icon_is_missing(web):
    web.routes["https://example.com/"] = httpx.Response(
        200, html=_page('<link rel="icon" href="/gone.ico">')
    )
    web.routes[SERVICE_ICON] = httpx.Response(200, content=b"service-icon")

    result = fetch_metadata("https://example.com/", timeout=1, max_bytes=10_000)

    assert result.favicon == b"service-icon"
    assert web.requested == [
        "https://example.com/",
        "https://example.com/gone.ico",
        SERVICE_ICON,
    ]
    assert result.preview_image is None


def test_fetch_metadata_uses_favicon_service_without_page_icon(web):
    web.routes["https://example.com/"] = httpx.Response(200, html=_page())
    web.routes[SERVICE_ICON] = httpx.Response(200, content=b"service-icon")

    result = fetch_metadata("https://example.com/", timeout=1, max_bytes=10_000)

    assert result.favicon == b"service-icon"
    assert web.requested == ["https://example.com/", SERVICE_ICON]


def test_fetch_metadata_raises_when_page_is_unavailable(web):
    with pytest.raises(httpx.HTTPStatusError):
        fetch_metadata("https://example.com/", timeout=1, max_bytes=10_000)


def test_fetch_image_rejects_images_over_the_size_cap():
    def handler(request):
        return httpx.Response(200, content=iter([b"y" * 400] * 10))

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        assert fetch_image(client, "https://example.com/big.jpg", max_bytes=1000) is None
        assert fetch_image(client, "https://example.com/big.jpg", max_bytes=4000) == b"y" * 4000


def test_fetch_and_update_metadata_skips_oversized_preview(tmp_path, web):
    web.routes["https://example.com/"] = httpx.Response(
        200, html=_page('<meta property="og:image" content="/huge.jpg">')
    )
    web.routes["https://example.com/huge.jpg"] = httpx.Response(200, content=b"z" * 5000)
    web.routes[SERVICE_ICON] = httpx.Response(200, content=b"icon")
    assets = LinkAssetStore(tmp_path)
    link = Link(id=uuid.uuid4(), url="https://example.com/", metadata_fetched=False)

    assert fetch_and_update_metadata(link, assets, timeout=1, max_bytes=1000) is True

    assert assets.load_favicon(link.id) == b"icon"
    assert assets.load_preview_image(link.id) is None
