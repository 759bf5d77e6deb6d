"""Teatro Vorterix listing on AllAccess (https://www.allaccess.com.ar/venue/teatro-vorterix).

Dates look like "29 de Noviembre", "12 de Diciembre 2025" or
"21&nbsp;de Noviembre"; links are relative ("../event/nombre").
"""

from src.config.scrapers import register_scraper_config
from src.core.scraper_config import DetailPageConfig, ListingConfig, ScraperConfig

VENUE_DEFAULTS = {
    "venue": "Teatro Vorterix",
    "city": "Buenos Aires",
    "country": "AR",
    "address": "Av. Federico Lacroze 3455, C1427 CABA",
    "category": "Concierto",
}

TEATRO_VORTERIX = register_scraper_config(
    ScraperConfig(
        name="teatrovorterix",
        base_url="https://www.allaccess.com.ar",
        listing=ListingConfig(
            url="/venue/teatro-vorterix",
            item_selector="a.col-sm-6.col-md-4",
        ),
        selectors={
            "title": ".show-info h2",
            "date": ".show-info h3",
            "image": ".show-thumb img@src",
            # The item itself is the <a>
            "link": "@href",
        },
        default_values=VENUE_DEFAULTS,
        transforms={
            "date": "parse_spanish_date",
            "image": "to_absolute_url",
            "link": "to_absolute_url",
            "title": "clean_whitespace",
        },
        detail_page=DetailPageConfig(
            enabled=False,
            selectors={
                # "10/12/2025 21:00"
                "date": "#show-button strong",
                # Cheapest rate first: "$ 42.000,00"
                "price": ".rate .price",
                "description": ".event-description, .event-info, .container p",
                "title": "h1",
                "image": "meta[property='og:image']@content",
            },
            default_values=VENUE_DEFAULTS,
            transforms={
                "date": "parse_spanish_date",
                "price": "extract_price",
                "description": "sanitize_html",
                "image": "to_absolute_url",
                "title": "clean_whitespace",
            },
        ),
    )
)
