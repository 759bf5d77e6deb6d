"""Selector-driven field extraction from parsed HTML."""

from typing import Any

from bs4 import BeautifulSoup, Tag

from src.core.scraper_config import parse_selector
from src.utils.text import clean_whitespace
from src.utils.transforms import TransformContext, get_transform


def select_value(element: Tag, selector: str, field: str = "") -> str | None:
    """First non-empty value matched by ``selector`` inside ``element``.

    Alternatives are tried in order. Text values are whitespace-cleaned;
    attribute values are returned as found (also cleaned).
    """
    for alternative in parse_selector(selector, field):
        target = element if alternative.css is None else element.select_one(alternative.css)
        if target is None:
            continue

        if alternative.attribute:
            raw = target.get(alternative.attribute)
            if isinstance(raw, list):
                raw = " ".join(raw)
        elif target.name == "meta":
            raw = target.get("content")
        else:
            raw = target.get_text(" ", strip=True)

        value = clean_whitespace(raw) if raw else ""
        if value:
            return value
    return None


def extract_fields(
    element: Tag,
    selectors: dict[str, str | None],
    transforms: dict[str, str],
    context: TransformContext,
    source: str | None = None,
) -> dict[str, Any]:
    """Extract and transform every configured field of one element.

    Fields whose selector matches nothing, or whose transform returns
    None, are left out of the result so defaults can fill them in.
    """
    values: dict[str, Any] = {}
    for field_name, selector in selectors.items():
        if not selector:
            continue

        raw = select_value(element, selector, field_name)
        if raw is None:
            continue

        transform_name = transforms.get(field_name)
        if transform_name:
            value = get_transform(transform_name, field_name=field_name, source=source)(raw, context)
        else:
            value = raw

        if value is not None and value != "":
            values[field_name] = value
    return values


def select_items(soup: BeautifulSoup, item_selector: str, container_selector: str | None = None) -> list[Tag]:
    """Listing items, optionally scoped to the matching containers."""
    if container_selector:
        containers = soup.select(container_selector)
        if not containers:
            return []
        items: list[Tag] = []
        for container in containers:
            items.extend(container.select(item_selector))
        return items
    return soup.select(item_selector)
