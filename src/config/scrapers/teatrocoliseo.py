"""Teatro Coliseo (https://www.teatrocoliseo.org.ar).

The site answers 403 to most automated requests, so the selectors below
are the common patterns of Argentine theatre listings rather than ones
checked against live HTML. Detail pages stay disabled until the listing
is confirmed to work.
"""

from src.config.scrapers import register_scraper_config
from src.core.scraper_config import DetailPageConfig, ListingConfig, ScraperConfig

VENUE_DEFAULTS = {
    "venue": "Teatro Coliseo",
    "city": "Buenos Aires",
    "country": "AR",
    "address": "Marcelo T. de Alvear 1125, C1058 CABA",
}

TEATRO_COLISEO = register_scraper_config(
    ScraperConfig(
        name="teatrocoliseo",
        base_url="https://www.teatrocoliseo.org.ar",
        listing=ListingConfig(
            url="/cartelera",
            container_selector=".cartelera, .eventos, .programacion",
            item_selector=".evento, .event-card, .show",
        ),
        selectors={
            "title": "h2, h3, .title, .event-title",
            "date": ".fecha, .date, time",
            "image": "img@src",
            "link": "a@href",
            "price": ".precio, .price",
        },
        default_values={**VENUE_DEFAULTS, "category": "Teatro"},
        transforms={
            "date": "parse_spanish_date",
            "image": "to_absolute_url",
            "link": "to_absolute_url",
            "title": "clean_whitespace",
            "price": "extract_price",
        },
        detail_page=DetailPageConfig(
            enabled=False,
            selectors={
                "date": ".fecha, .date, time",
                "venue": ".venue, .lugar, .teatro",
                "address": ".direccion, .address",
                "price": ".precio, .price",
                "description": ".descripcion, .description, .info",
                "title": "h1",
                "image": "meta[property='og:image']@content, img.poster@src",
                "category": ".categoria, .category, .genero",
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
