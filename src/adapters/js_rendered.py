"""Scraper for listings that only exist after JavaScript runs."""

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.adapters.static_html import StaticHtmlScraper
from src.core.base_adapter import AdapterType, FetchParams
from src.core.event_model import RawEvent
from src.core.exceptions import NetworkError, TimeoutError
from src.core.retry import retry_async
from src.core.scraper_config import PaginationType
from src.logging import get_logger

logger = get_logger(__name__)

SCROLL_SCRIPT = "window.scrollTo(0, document.body.scrollHeight)"


class JsRenderedScraper(StaticHtmlScraper):
    """Same contract as ``StaticHtmlScraper``, rendered in headless Chromium.

    Each page is loaded with Playwright; extraction then runs on
    ``page.content()`` exactly like a static page.
    """

    adapter_type = AdapterType.DYNAMIC

    _scroll_rounds: int = 0

    def max_pages(self, params: FetchParams) -> int:
        if self.config.listing.pagination.type == PaginationType.INFINITE_SCROLL:
            return 1
        return super().max_pages(params)

    async def fetch(self, params: FetchParams | None = None) -> list[RawEvent]:
        params = params or FetchParams()
        pagination = self.config.listing.pagination
        if pagination.type == PaginationType.INFINITE_SCROLL:
            self._scroll_rounds = (params.max_pages or pagination.max_pages) - 1
        else:
            self._scroll_rounds = 0

        try:
            return await super().fetch(params)
        finally:
            await self.close_browser()

    async def load_page(self, url: str, listing: bool = False) -> str:
        return await retry_async(
            lambda: self._render(url, listing),
            self.retry_policy,
            sleep=self.sleep,
            label=url,
        )

    async def _render(self, url: str, listing: bool) -> str:
        page = await self.get_page(self.config.user_agent)
        try:
            await page.set_extra_http_headers(self.config.headers)
            try:
                await page.goto(url, wait_until="networkidle", timeout=self.timeout * 1000)
            except PlaywrightTimeoutError:
                raise TimeoutError(url, self.timeout, source=self.name) from None
            except PlaywrightError as e:
                raise NetworkError(str(e), url=url, source=self.name) from e

            await self._wait_for_content(page, url)
            if listing and self._scroll_rounds > 0:
                await self._scroll(page)

            html = await page.content()
            logger.debug("page_rendered", source=self.name, url=url, length=len(html))
            return html
        finally:
            await page.context.close()

    async def _wait_for_content(self, page: Page, url: str) -> None:
        selector = self.config.wait_for_selector
        if not selector:
            await page.wait_for_timeout(self.config.wait_for_timeout)
            return

        try:
            await page.wait_for_selector(selector, timeout=self.config.wait_for_timeout)
        except PlaywrightTimeoutError:
            # The content may still be there under a different selector
            logger.warning("wait_for_selector_timeout", source=self.name, url=url, selector=selector)

    async def _scroll(self, page: Page) -> None:
        for round_number in range(self._scroll_rounds):
            await page.evaluate(SCROLL_SCRIPT)
            await self.sleep(self.config.page_delay)
            logger.debug("page_scrolled", source=self.name, round=round_number + 1)
