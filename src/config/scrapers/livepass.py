"""LivePass listing for Café Berlín (https://livepass.com.ar/taxons/cafe-berlin).

Listing dates have no year ("09 NOV"); the detail page carries the full
date and time in its meta description ("Martes 11 NOV - 20:45 hrs"),
the venue ("Recinto: Café Berlín") and the price.
"""

from src.config.scrapers import register_scraper_config
from src.core.scraper_config import DetailPageConfig, ListingConfig, ScraperConfig
from src.utils.text import clean_whitespace
from src.utils.transforms import TransformContext, register_transform

VENUE_SUFFIX = " en Café Berlín"
VENUE_PREFIX = "Recinto:"


@register_transform("clean_livepass_title")
def clean_livepass_title(value: str, context: TransformContext) -> str:
    """Drop the venue suffix: ``Santiago Molina en Café Berlín`` -> ``Santiago Molina``."""
    title = clean_whitespace(value)
    if title.endswith(VENUE_SUFFIX):
        title = title[: -len(VENUE_SUFFIX)]
    return title.strip()


@register_transform("extract_livepass_venue")
def extract_livepass_venue(value: str, context: TransformContext) -> str | None:
    """``Recinto: Café Berlín`` -> ``Café Berlín``."""
    text = clean_whitespace(value)
    if VENUE_PREFIX in text:
        text = text.split(VENUE_PREFIX, 1)[1]
    return text.strip() or None


LIVEPASS = register_scraper_config(
    ScraperConfig(
        name="livepass",
        base_url="https://livepass.com.ar",
        listing=ListingConfig(
            url="/taxons/cafe-berlin",
            container_selector=".row.grid",
            item_selector=".event-box",
        ),
        selectors={
            "title": "h1.m-y-0",
            "date": ".date-home",
            "image": "img.img-home-count@src",
            "link": "a@href",
        },
        default_values={
            "venue": "Café Berlín",
            "city": "Buenos Aires",
            "country": "AR",
            "category": "Concierto",
        },
        transforms={
            "date": "parse_spanish_date",
            "image": "to_absolute_url",
            "link": "to_absolute_url",
            "title": "clean_livepass_title",
        },
        detail_page=DetailPageConfig(
            enabled=True,
            delay_between_requests=0.5,
            selectors={
                "date": "meta[name='description']@content",
                "venue": "p:-soup-contains('Recinto:')",
                # Already numeric ("15000.00"), no transform needed
                "price": "meta[property='og:product:price:amount']@content",
                "description": ".description-content",
                "title": "h1",
                "image": "meta[property='og:image']@content",
            },
            default_values={
                "venue": "Café Berlín",
                "city": "Buenos Aires",
                "country": "AR",
            },
            transforms={
                "date": "parse_spanish_date",
                "venue": "extract_livepass_venue",
                "description": "sanitize_html",
                "image": "to_absolute_url",
                "title": "clean_livepass_title",
            },
        ),
    )
)
