"""Registry of declarative site scraper configurations.

Each site module builds a ``ScraperConfig`` and registers it at import
time. Adding a site means adding a module here, not touching scraper code.

Usage:
    from src.config.scrapers import get_scraper_config

    config = get_scraper_config("livepass")
"""

from src.core.exceptions import SourceNotFoundError
from src.core.scraper_config import ScraperConfig

# Registry of all site configs, keyed by config name
SCRAPER_CONFIGS: dict[str, ScraperConfig] = {}

_configs_loaded = False


def register_scraper_config(config: ScraperConfig) -> ScraperConfig:
    """Register a site config under its name."""
    SCRAPER_CONFIGS[config.name] = config
    return config


def get_scraper_config(name: str) -> ScraperConfig:
    """Get a site config by name.

    Raises:
        SourceNotFoundError: if no site is registered under ``name``
    """
    _ensure_configs_loaded()
    try:
        return SCRAPER_CONFIGS[name]
    except KeyError:
        raise SourceNotFoundError(name, available=list_scraper_configs()) from None


def list_scraper_configs() -> list[str]:
    _ensure_configs_loaded()
    return sorted(SCRAPER_CONFIGS)


def _ensure_configs_loaded() -> None:
    """Import site modules to trigger registration."""
    global _configs_loaded
    if _configs_loaded:
        return
    _configs_loaded = True

    from src.config.scrapers import livepass  # noqa: F401
    from src.config.scrapers import movistararena  # noqa: F401
    from src.config.scrapers import teatrocoliseo  # noqa: F401
    from src.config.scrapers import teatrovorterix  # noqa: F401
