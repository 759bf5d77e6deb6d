"""Event source adapters and the factory that builds them by name.

Two kinds of sources exist:
- adapters with their own code (Ticketmaster API, AllAccess JSON), registered
  with ``@register_adapter``
- config-driven web scrapers, one per ``ScraperConfig`` in
  ``src.config.scrapers``
"""

from collections.abc import Callable
from typing import Any

from src.adapters.allaccess import AllAccessAdapter
from src.adapters.js_rendered import JsRenderedScraper
from src.adapters.static_html import StaticHtmlScraper
from src.adapters.ticketmaster import TicketmasterAdapter
from src.config.scrapers import get_scraper_config, list_scraper_configs
from src.config.settings import Settings, get_settings
from src.core.base_adapter import BaseAdapter
from src.core.exceptions import ConfigurationError, SourceNotFoundError
from src.core.scraper_config import ScraperConfig
from src.logging import get_logger

logger = get_logger(__name__)

AdapterBuilder = Callable[[Settings], BaseAdapter]

# Registry of code-backed adapters
ADAPTER_REGISTRY: dict[str, AdapterBuilder] = {}


def register_adapter(name: str) -> Callable[[AdapterBuilder], AdapterBuilder]:
    """Decorator to register an adapter builder in the registry.

    Usage:
        @register_adapter("ticketmaster")
        def build_ticketmaster(settings: Settings) -> BaseAdapter:
            ...
    """

    def decorator(builder: AdapterBuilder) -> AdapterBuilder:
        ADAPTER_REGISTRY[name] = builder
        return builder

    return decorator


def create_web_scraper(config: ScraperConfig, **kwargs: Any) -> StaticHtmlScraper:
    """Playwright scraper for JS-rendered sites, plain HTTP otherwise."""
    if config.requires_javascript:
        return JsRenderedScraper(config, **kwargs)
    return StaticHtmlScraper(config, **kwargs)


def list_sources() -> list[str]:
    """All source names that ``build_source`` accepts."""
    return sorted(set(ADAPTER_REGISTRY) | set(list_scraper_configs()))


def build_source(name: str, settings: Settings | None = None) -> BaseAdapter:
    """Build one source adapter by name.

    Raises:
        SourceNotFoundError: unknown name
        ConfigurationError: the source cannot be configured (e.g. missing API key)
    """
    settings = settings or get_settings()

    builder = ADAPTER_REGISTRY.get(name)
    if builder is not None:
        return builder(settings)

    try:
        config = get_scraper_config(name)
    except SourceNotFoundError:
        raise SourceNotFoundError(name, available=list_sources()) from None

    if config.user_agent != settings.scraper_user_agent:
        config = config.model_copy(update={"user_agent": settings.scraper_user_agent})
    return create_web_scraper(config)


def build_sources(names: list[str] | None = None, settings: Settings | None = None) -> list[BaseAdapter]:
    """Build several adapters.

    With explicit ``names`` any configuration problem is raised. Without
    names every known source is built and the ones that cannot be
    configured are skipped with a warning.
    """
    settings = settings or get_settings()
    if names:
        return [build_source(name, settings) for name in names]

    adapters = []
    for name in list_sources():
        try:
            adapters.append(build_source(name, settings))
        except ConfigurationError as e:
            logger.warning("source_skipped", source=name, error=str(e))
    return adapters


# ============================================================
# CODE-BACKED ADAPTERS
# ============================================================


@register_adapter("ticketmaster")
def build_ticketmaster(settings: Settings) -> BaseAdapter:
    return TicketmasterAdapter(
        settings.ticketmaster_api_key,
        country_code=settings.ticketmaster_country_code,
        city=settings.ticketmaster_city,
        timezone=settings.default_timezone,
    )


@register_adapter("allaccess")
def build_allaccess(settings: Settings) -> BaseAdapter:
    return AllAccessAdapter(user_agent=settings.scraper_user_agent)


__all__ = [
    "ADAPTER_REGISTRY",
    "AllAccessAdapter",
    "JsRenderedScraper",
    "StaticHtmlScraper",
    "TicketmasterAdapter",
    "build_source",
    "build_sources",
    "create_web_scraper",
    "list_sources",
    "register_adapter",
]
