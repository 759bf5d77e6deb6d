"""Field transform registry.

Scraper configs bind fields to transforms by name::

    transforms={"date": "parse_spanish_date", "link": "to_absolute_url"}

Each transform is a pure function ``(value, context) -> value``. Names are
resolved when the config is built, so a typo fails before any request.

Usage:
    @register_transform("strip_sold_out")
    def strip_sold_out(value: str, context: TransformContext) -> str:
        return value.replace("AGOTADO", "").strip()
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from src.core.exceptions import UnknownTransformError
from src.utils.date_parser import DEFAULT_TIMEZONE, parse_spanish_date
from src.utils.text import clean_whitespace as _clean_whitespace
from src.utils.text import sanitize_html as _sanitize_html
from src.utils.urls import extract_background_image as _extract_background_image
from src.utils.urls import to_absolute_url as _to_absolute_url


@dataclass(frozen=True)
class TransformContext:
    """Values a transform may need besides the raw field value."""

    base_url: str = ""
    timezone: str = DEFAULT_TIMEZONE
    now: datetime | None = field(default=None)

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


Transform = Callable[[str, TransformContext], Any]

# Registry of all available transforms
TRANSFORM_REGISTRY: dict[str, Transform] = {}


def register_transform(name: str) -> Callable[[Transform], Transform]:
    """Decorator to register a transform under ``name``."""

    def decorator(func: Transform) -> Transform:
        TRANSFORM_REGISTRY[name] = func
        return func

    return decorator


def get_transform(name: str, field_name: str | None = None, source: str | None = None) -> Transform:
    """Look up a transform, raising UnknownTransformError if missing."""
    try:
        return TRANSFORM_REGISTRY[name]
    except KeyError:
        raise UnknownTransformError(name, field=field_name, source=source) from None


def list_transforms() -> list[str]:
    """List all registered transform names."""
    return sorted(TRANSFORM_REGISTRY)


def apply_transform(name: str, value: str, context: TransformContext | None = None) -> Any:
    """Apply a registered transform to a single value."""
    return get_transform(name)(value, context or TransformContext())


# ============================================================
# BUILT-IN TRANSFORMS
# ============================================================


@register_transform("parse_spanish_date")
def parse_date(value: str, context: TransformContext) -> datetime | None:
    return parse_spanish_date(value, tz=context.zone, now=context.now)


@register_transform("extract_price")
def extract_price(value: str, context: TransformContext) -> int | None:
    """Extract a whole-number price from strings like "$ 12.500,50".

    "Gratis" / "free" mean 0. Dots are thousands separators and the comma
    is the decimal mark.
    """
    if not value:
        return None

    normalized = value.lower().strip()
    if "gratis" in normalized or "free" in normalized:
        return 0

    match = re.search(r"\d[\d.,]*", normalized)
    if not match:
        return None

    number = match.group(0).replace(".", "").replace(",", ".")
    try:
        price = float(number)
    except ValueError:
        return None
    return round(price) if price >= 0 else None


@register_transform("to_absolute_url")
def to_absolute_url(value: str, context: TransformContext) -> str:
    return _to_absolute_url(value, context.base_url)


@register_transform("extract_background_image")
def extract_background_image(value: str, context: TransformContext) -> str | None:
    url = _extract_background_image(value)
    return _to_absolute_url(url, context.base_url) if url else None


@register_transform("sanitize_html")
def sanitize_html(value: str, context: TransformContext) -> str:
    return _sanitize_html(value)


@register_transform("clean_whitespace")
def clean_whitespace(value: str, context: TransformContext) -> str:
    return _clean_whitespace(value)
