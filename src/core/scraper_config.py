"""Declarative scraper configuration.

A ``ScraperConfig`` describes one site: where the listing lives, how to
paginate, which CSS selector feeds each field, which transforms run on the
extracted values, and how politely to fetch. Configs are immutable and
validated when built, so a bad selector or transform name fails at source
registration instead of halfway through a run.

Selector syntax:
- ``"h5"``: text content of the first match inside the item
- ``"img.poster@src"``: attribute ``src`` of the first match
- ``"@href"``: attribute ``href`` of the item element itself
- ``"meta[property='og:image']@content, img@src"``: alternatives tried in order
"""

import re
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.core.exceptions import InvalidConfigError
from src.core.retry import RetryPolicy
from src.utils.date_parser import DEFAULT_TIMEZONE
from src.utils.transforms import get_transform

DEFAULT_USER_AGENT = "EnVivoBot/1.0 (+https://envivo.ar/bot)"

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml",
    "Accept-Language": "es-AR,es;q=0.9",
}

# Fields a selector may feed
KNOWN_FIELDS = frozenset({
    "title",
    "date",
    "time",
    "end_date",
    "venue",
    "city",
    "country",
    "address",
    "price",
    "price_max",
    "image",
    "link",
    "category",
    "genre",
    "description",
})

ATTRIBUTE_NAME = re.compile(r"^[\w:.-]+$")


class PaginationType(str, Enum):
    """Pagination strategy for listing pages."""

    NONE = "none"
    URL = "url"  # ?page=N or a custom pattern with {page}
    INFINITE_SCROLL = "infinite_scroll"  # JS-rendered sites only


class Selector(BaseModel):
    """One parsed selector alternative."""

    model_config = ConfigDict(frozen=True)

    css: str | None
    attribute: str | None = None


def _split_top_level(selector: str) -> list[str]:
    """Split on commas that are not inside brackets, quotes or parentheses."""
    parts: list[str] = []
    depth = 0
    quote: str | None = None
    current = ""
    for char in selector:
        if quote:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char in "[(":
            depth += 1
        elif char in "])":
            depth -= 1
        elif char == "," and depth == 0:
            parts.append(current.strip())
            current = ""
            continue
        current += char
    parts.append(current.strip())
    return [part for part in parts if part]


def _parse_single(part: str, field: str) -> Selector:
    css, sep, attribute = part.rpartition("@")
    if not sep:
        return Selector(css=part)
    if not ATTRIBUTE_NAME.match(attribute):
        raise InvalidConfigError(f"Invalid attribute in selector '{part}'", field=field)
    return Selector(css=css.strip() or None, attribute=attribute)


def parse_selector(selector: str, field: str = "") -> list[Selector]:
    """Parse a selector string into the alternatives to try, in order.

    A comma-separated group without any ``@attr`` is kept whole, so the
    HTML parser evaluates it as a regular CSS selector group.
    """
    selector = selector.strip()
    if not selector:
        raise InvalidConfigError("Empty selector", field=field)

    parts = _split_top_level(selector)
    if not any("@" in part for part in parts):
        return [Selector(css=selector)]
    return [_parse_single(part, field) for part in parts]


class PaginationConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: PaginationType = PaginationType.NONE
    pattern: str | None = None  # e.g. "/shows/page/{page}"
    max_pages: int = Field(default=1, ge=1)
    delay_between_pages: float | None = Field(default=None, ge=0)  # seconds


class ListingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    item_selector: str
    container_selector: str | None = None
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)


class DetailPageConfig(BaseModel):
    """Second-hop fetch per item to enrich fields missing from the listing."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    selectors: dict[str, str | None] = Field(default_factory=dict)
    default_values: dict[str, str] = Field(default_factory=dict)
    transforms: dict[str, str] = Field(default_factory=dict)
    delay_between_requests: float = Field(default=0.5, ge=0)  # seconds


class RateLimitConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    requests_per_second: float = Field(default=1.0, gt=0)

    @property
    def min_interval(self) -> float:
        return 1.0 / self.requests_per_second


class ErrorHandlingConfig(BaseModel):
    """Independent skip-or-abort policies for pages and items."""

    model_config = ConfigDict(frozen=True)

    skip_failed_events: bool = True
    skip_failed_pages: bool = False
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    timeout: float = Field(default=15.0, gt=0)  # seconds


class ScraperConfig(BaseModel):
    """Immutable description of one scraped site."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    base_url: str
    listing: ListingConfig
    selectors: dict[str, str | None]
    default_values: dict[str, str] = Field(default_factory=dict)
    transforms: dict[str, str] = Field(default_factory=dict)
    detail_page: DetailPageConfig | None = None
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    error_handling: ErrorHandlingConfig = Field(default_factory=ErrorHandlingConfig)

    requires_javascript: bool = False
    wait_for_selector: str | None = None
    wait_for_timeout: int = Field(default=30000, ge=0)  # milliseconds

    timezone: str = DEFAULT_TIMEZONE
    user_agent: str = DEFAULT_USER_AGENT
    headers: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_HEADERS))

    @model_validator(mode="after")
    def validate_bindings(self) -> "ScraperConfig":
        """Resolve every selector and transform name up front."""
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise InvalidConfigError(
                f"Unknown timezone: {self.timezone}", field="timezone", source=self.name
            ) from None

        parse_selector(self.listing.item_selector, "item_selector")
        if self.listing.container_selector:
            parse_selector(self.listing.container_selector, "container_selector")

        pagination = self.listing.pagination
        if pagination.pattern and "{page}" not in pagination.pattern:
            raise InvalidConfigError(
                "Pagination pattern must contain '{page}'",
                field="pagination.pattern",
                source=self.name,
            )

        self._check_section(self.selectors, self.default_values, self.transforms, required=True)
        if self.detail_page is not None:
            self._check_section(
                self.detail_page.selectors,
                self.detail_page.default_values,
                self.detail_page.transforms,
                required=False,
            )
        return self

    def _check_section(
        self,
        selectors: dict[str, str | None],
        defaults: dict[str, str],
        transforms: dict[str, str],
        required: bool,
    ) -> None:
        for field_name, selector in selectors.items():
            if field_name not in KNOWN_FIELDS:
                raise InvalidConfigError(
                    f"Unknown field '{field_name}'", field=field_name, source=self.name
                )
            if selector:
                parse_selector(selector, field_name)

        if required:
            for field_name in ("title", "date"):
                if not selectors.get(field_name) and field_name not in defaults:
                    raise InvalidConfigError(
                        f"Missing required selector: {field_name}",
                        field=field_name,
                        source=self.name,
                    )

        for field_name, transform_name in transforms.items():
            get_transform(transform_name, field_name=field_name, source=self.name)

    @property
    def page_delay(self) -> float:
        """Seconds to wait between listing pages."""
        delay = self.listing.pagination.delay_between_pages
        return delay if delay is not None else self.rate_limit.min_interval

    @property
    def request_headers(self) -> dict[str, str]:
        return {"User-Agent": self.user_agent, **self.headers}

    def page_url(self, page: int, override_url: str | None = None) -> str:
        """Relative or absolute URL of listing page ``page`` (1-based)."""
        listing_url = override_url or self.listing.url
        pagination = self.listing.pagination

        if page == 1 or pagination.type == PaginationType.NONE:
            return listing_url

        if pagination.pattern:
            return pagination.pattern.replace("{page}", str(page))

        separator = "&" if "?" in listing_url else "?"
        return f"{listing_url}{separator}page={page}"
