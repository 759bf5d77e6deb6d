"""Text cleaning and normalization utilities.

Provides functions for cleaning scraped text, sanitizing HTML descriptions
and building comparison keys for Spanish-language listings.
"""

import re
import unicodedata

from bs4 import BeautifulSoup, Comment

# Tags and attributes that survive sanitize_html
ALLOWED_TAGS = frozenset({"p", "br", "strong", "em", "b", "i", "u", "a"})
ALLOWED_ATTRIBUTES = frozenset({"href", "target"})

# Tags removed together with their content
DROPPED_TAGS = ("script", "style", "iframe", "object", "embed", "noscript", "template")


def normalize_unicode(text: str) -> str:
    """Normalize Unicode to NFC form (composed characters)."""
    return unicodedata.normalize("NFC", text)


def clean_whitespace(text: str | None) -> str:
    """Collapse runs of whitespace (including ``&nbsp;``) into single spaces.

    Args:
        text: Input text

    Returns:
        Trimmed text, or "" for empty input
    """
    if not text:
        return ""

    text = text.replace("\u00a0", " ").replace("&nbsp;", " ")
    return re.sub(r"\s+", " ", text).strip()


def strip_accents(text: str) -> str:
    """Remove diacritics (``Café`` -> ``Cafe``)."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(c for c in decomposed if unicodedata.category(c) != "Mn")


def normalize_text(text: str | None) -> str:
    """Normalize text for comparison.

    - Lowercase
    - Remove accents
    - Remove punctuation
    - Collapse whitespace
    """
    if not text:
        return ""

    text = strip_accents(text.lower())
    text = re.sub(r"[^\w\s]", " ", text)
    return " ".join(text.split())


def slugify(text: str, separator: str = "_", max_length: int | None = None) -> str:
    """Convert text to a lowercase ASCII slug.

    Args:
        text: Input text
        separator: Replacement for runs of non-alphanumerics
        max_length: Optional truncation

    Returns:
        Slug text
    """
    if not text:
        return ""

    result = strip_accents(normalize_unicode(text.lower()))
    result = re.sub(r"[^a-z0-9]+", separator, result)
    if max_length is not None:
        result = result[:max_length]
    return result


def sanitize_html(html: str | None) -> str:
    """Keep only a safe subset of HTML.

    Disallowed tags are unwrapped (their text is kept), dangerous containers
    such as ``<script>`` are removed with their content, and only ``href``
    and ``target`` attributes survive. ``javascript:`` links are dropped.

    Args:
        html: HTML fragment

    Returns:
        Sanitized HTML string ("" for empty input)
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    for tag in soup.find_all(DROPPED_TAGS):
        tag.decompose()

    for tag in soup.find_all(True):
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
            continue

        tag.attrs = {
            name: value
            for name, value in tag.attrs.items()
            if name in ALLOWED_ATTRIBUTES
        }
        href = tag.attrs.get("href")
        if isinstance(href, str) and href.strip().lower().startswith("javascript:"):
            del tag.attrs["href"]

    return str(soup).strip()
