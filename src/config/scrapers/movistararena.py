"""Movistar Arena (https://www.movistararena.com.ar/shows).

The site is a Blazor Server app: listings only exist after JavaScript
runs, so this config requires the Playwright scraper. Every show is in
the same venue, which comes from ``default_values``.
"""

from src.config.scrapers import register_scraper_config
from src.core.scraper_config import DetailPageConfig, ListingConfig, ScraperConfig

VENUE_DEFAULTS = {
    "venue": "Movistar Arena",
    "city": "Buenos Aires",
    "country": "AR",
    "address": "Humboldt 450, C1414CTL CABA",
    "category": "Concierto",
}

MOVISTAR_ARENA = register_scraper_config(
    ScraperConfig(
        name="movistararena",
        base_url="https://www.movistararena.com.ar",
        requires_javascript=True,
        wait_for_selector=".evento",
        wait_for_timeout=30000,
        listing=ListingConfig(url="/shows", item_selector=".evento"),
        selectors={
            "title": "h5",
            # "15 noviembre 2025" or "20 noviembre 2025 y 2 fechas más"
            "date": ".descripcion span",
            # background-image: url('...')
            "image": ".box-img@style",
            "link": ".box-img a@href",
        },
        default_values=VENUE_DEFAULTS,
        transforms={
            "date": "parse_spanish_date",
            "image": "extract_background_image",
            "link": "to_absolute_url",
            "title": "clean_whitespace",
        },
        # Price and description only exist on the show page
        detail_page=DetailPageConfig(
            enabled=False,
            selectors={
                "date": "meta[name='description']@content",
                "price": ".precio, .price",
                "description": ".description, .event-description",
                "title": "h1",
                "image": "meta[property='og:image']@content",
            },
            default_values=VENUE_DEFAULTS,
            transforms={
                "date": "parse_spanish_date",
                "description": "sanitize_html",
                "price": "extract_price",
                "image": "to_absolute_url",
                "title": "clean_whitespace",
            },
        ),
    )
)
