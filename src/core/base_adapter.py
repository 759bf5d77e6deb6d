"""Base adapter class for all event sources."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from src.core.event_model import RawEvent
from src.core.exceptions import AuthError, NetworkError, ParseError, RateLimitError, TimeoutError
from src.core.retry import RetryPolicy, SleepFunc, retry_async
from src.logging import get_logger

logger = get_logger(__name__)


class AdapterType(str, Enum):
    """Type of adapter based on source technology."""

    API = "api"  # REST/JSON API
    STATIC = "static"  # Static HTML (httpx + BeautifulSoup)
    DYNAMIC = "dynamic"  # JavaScript SPA (Playwright)


@dataclass
class FetchParams:
    """Per-call overrides for ``fetch``. Unset fields use the adapter's config."""

    max_pages: int | None = None
    url: str | None = None
    country_code: str | None = None
    city: str | None = None
    classification: str | None = None
    size: int | None = None


CHROMIUM_ARGS = ["--no-sandbox", "--disable-dev-shm-usage"]


class BaseAdapter(ABC):
    """Abstract base class for all event source adapters.

    Owns the HTTP client and, for JS-rendered sources, the Playwright
    browser. ``fetch`` translates transport failures into the
    ``SourceFetchError`` family so the orchestrator only sees our errors.
    """

    name: str = ""
    adapter_type: AdapterType = AdapterType.STATIC

    def __init__(
        self,
        *,
        retry_policy: RetryPolicy | None = None,
        timeout: float = 15.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunc | None = None,
    ) -> None:
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self.headers = headers or {}
        self._transport = transport
        self._sleep = sleep
        self._http_client: httpx.AsyncClient | None = None
        self._browser: Browser | None = None
        self._playwright: Any = None
        self.logger = get_logger(f"adapter.{self.name}")

    async def sleep(self, seconds: float) -> None:
        """Wait between requests (injectable for tests)."""
        if seconds <= 0:
            return
        await (self._sleep or asyncio.sleep)(seconds)

    # ==========================================
    # HTTP Client Management
    # ==========================================

    async def get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client for API/static requests."""
        if self._http_client is None or self._http_client.is_closed:
            kwargs: dict[str, Any] = {
                "timeout": httpx.Timeout(self.timeout),
                "headers": self.headers,
                "follow_redirects": True,
            }
            if self._transport is not None:
                kwargs["transport"] = self._transport
            self._http_client = httpx.AsyncClient(**kwargs)
        return self._http_client

    async def close_http_client(self) -> None:
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    # ==========================================
    # Playwright Browser Management
    # ==========================================

    async def get_browser(self) -> Browser:
        """Get or create Playwright browser for dynamic content."""
        if self._browser is None:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=True,
                args=CHROMIUM_ARGS,
            )
        return self._browser

    async def get_page(self, user_agent: str | None = None) -> Page:
        """Get a new browser page in a fresh context."""
        browser = await self.get_browser()
        context: BrowserContext = await browser.new_context(
            viewport={"width": 1920, "height": 1080},
            user_agent=user_agent or self.headers.get("User-Agent"),
            locale="es-AR",
        )
        return await context.new_page()

    async def close_browser(self) -> None:
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    async def close(self) -> None:
        """Release the HTTP client and browser, if any."""
        await self.close_http_client()
        await self.close_browser()

    async def __aenter__(self) -> "BaseAdapter":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ==========================================
    # Request Methods with Retry
    # ==========================================

    def _raise_for_status(self, response: httpx.Response, url: str) -> None:
        status = response.status_code
        if status < 400:
            return
        if status == 401:
            raise AuthError(source=self.name)
        if status in (429, 403):
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                source=self.name,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                url=url,
            )
        raise NetworkError(
            f"HTTP {status}",
            status_code=status,
            url=url,
            source=self.name,
        )

    async def _get_once(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        client = await self.get_http_client()
        try:
            response = await client.get(url, params=params)
        except httpx.TimeoutException:
            raise TimeoutError(url, self.timeout, source=self.name) from None
        except httpx.TransportError as e:
            raise NetworkError(str(e) or type(e).__name__, url=url, source=self.name) from e

        self._raise_for_status(response, url)
        return response

    async def fetch_url(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """GET a URL, retrying recoverable failures with exponential backoff.

        Raises:
            AuthError: HTTP 401 (not retried)
            RateLimitError: HTTP 429/403
            TimeoutError: request timed out
            NetworkError: connection failure or any other HTTP error status
        """
        return await retry_async(
            lambda: self._get_once(url, params),
            self.retry_policy,
            sleep=self._sleep or asyncio.sleep,
            label=url,
        )

    async def fetch_text(self, url: str, params: dict[str, Any] | None = None) -> str:
        response = await self.fetch_url(url, params)
        return response.text

    async def fetch_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        response = await self.fetch_url(url, params)
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"Invalid JSON from {url}: {e}", source=self.name) from e

    # ==========================================
    # Abstract Methods (to implement per source)
    # ==========================================

    @abstractmethod
    async def fetch(self, params: FetchParams | None = None) -> list[RawEvent]:
        """Fetch source-native events.

        Raises:
            SourceFetchError: when the source as a whole cannot be read
        """

