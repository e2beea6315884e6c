from __future__ import annotations

from urllib.parse import urlsplit

WEB_SCHEMES = {"http", "https"}
FAVICON_SERVICE_URL = "https://www.google.com/s2/favicons?domain={host}&sz=128"


def normalize_name(value: str | None) -> str:
    return (value or "").strip()


def normalize_url(value: str | None) -> str | None:
    """Canonical absolute form of a web URL, or ``None`` when it is not one.

    A missing ``http://``/``https://`` prefix is replaced by ``https://``.
    """
    text = (value or "").strip()
    if not text:
        return None
    if not text.lower().startswith(("http://", "https://")):
        text = f"https://{text}"
    if any(ch.isspace() or ord(ch) < 32 for ch in text):
        return None

    try:
        parsed = urlsplit(text)
        parsed.port  # raises ValueError on a malformed port
    except ValueError:
        return None

    if parsed.scheme not in WEB_SCHEMES or not parsed.netloc:
        return None
    # geturl() would drop an empty "?" or "#"
    return parsed.scheme + text[len(parsed.scheme):]


def name_key(value: str | None) -> str:
    return normalize_name(value)


def url_key(value: str | None) -> str:
    trimmed = (value or "").strip()
    return normalize_url(trimmed) or trimmed


def favicon_service_url(url: str | None) -> str | None:
    normalized = normalize_url(url)
    host = urlsplit(normalized).hostname if normalized else None
    if not host:
        return None
    return FAVICON_SERVICE_URL.format(host=host)
