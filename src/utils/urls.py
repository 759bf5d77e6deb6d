"""URL extraction and normalization utilities."""

import re

BACKGROUND_URL_PATTERN = re.compile(r"url\(\s*(['\"]?)(.*?)\1\s*\)", re.IGNORECASE)


def to_absolute_url(url: str | None, base_url: str) -> str:
    """Convert a relative URL to absolute.

    Absolute URLs are returned unchanged and protocol-relative URLs get
    ``https:``. Anything else is appended to ``base_url`` as a path.

    Args:
        url: URL (may be relative)
        base_url: Site root, e.g. ``https://livepass.com.ar``

    Returns:
        Absolute URL, or "" for empty input
    """
    if not url:
        return ""

    url = url.strip()
    if url.startswith(("http://", "https://")):
        return url
    if url.startswith("//"):
        return "https:" + url

    base = base_url[:-1] if base_url.endswith("/") else base_url
    path = url if url.startswith("/") else f"/{url}"
    return f"{base}{path}"


def extract_background_image(style: str | None) -> str | None:
    """Extract the URL from an inline ``background-image: url(...)`` style."""
    if not style:
        return None

    match = BACKGROUND_URL_PATTERN.search(style)
    if not match:
        return None

    url = match.group(2).strip()
    return url or None
