"""Page renderer implementations.

``HttpPageRenderer`` fetches raw markup with httpx. ``PlaywrightPageRenderer``
loads the page in headless Chromium and scrolls every image into view so that
lazily loaded sources are reported.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from ..errors import FetchError, RedirectLoopError
from .base import PageRenderer, RenderedPage

# Script returning the effective source of every <img> on the page
IMAGE_SOURCES_JS = "() => Array.from(document.images, img => img.currentSrc || img.src)"


class HttpPageRenderer(PageRenderer):
    """Fetch page markup over plain HTTP. No lazy-load support."""

    def __init__(self, client: httpx.AsyncClient):
        """Initialize with a shared HTTP client.

        Args:
            client: Client configured with the redirect cap and timeouts

        """
        self.client = client

    async def render(self, url: str) -> RenderedPage:
        """Fetch a page and return its markup.

        Raises:
            RedirectLoopError: If the page redirects past the client's cap
            FetchError: On transport failure or non-success status

        """
        logger.debug("Fetching page {}", url)
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.TooManyRedirects as e:
            raise RedirectLoopError(f"Too many redirects fetching {url}", url=url) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Error fetching URL {url}", url=url) from e

        return RenderedPage(url=url, final_url=str(response.url), html=response.text)


class PlaywrightPageRenderer(PageRenderer):
    """Render pages in headless Chromium via Playwright."""

    def __init__(self, navigation_timeout: float = 30.0, scroll_pause: float = 0.2):
        """Initialize the renderer.

        Args:
            navigation_timeout: Seconds allowed for the initial navigation
            scroll_pause: Seconds to wait after scrolling each image into view

        """
        self.navigation_timeout = navigation_timeout
        self.scroll_pause = scroll_pause

    async def render(self, url: str) -> RenderedPage:
        """Navigate to a URL and snapshot the DOM once the network is idle."""
        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import async_playwright

        playwright = await async_playwright().start()
        browser = None
        try:
            browser = await playwright.chromium.launch(headless=True)
            page = await browser.new_page()
            page.set_default_navigation_timeout(self.navigation_timeout * 1000)
            logger.info("Loading {} in headless browser", url)
            await page.goto(url, wait_until="networkidle")
            html = await page.content()
        except PlaywrightError as e:
            await _shutdown(playwright, browser)
            raise FetchError(f"Error rendering URL {url}", url=url) from e
        except BaseException:
            await _shutdown(playwright, browser)
            raise

        return RenderedPage(
            url=url,
            final_url=page.url,
            html=html,
            handle={"playwright": playwright, "browser": browser, "page": page},
        )

    async def discover_lazy_images(self, page: RenderedPage, found: list[str]) -> None:
        """Scroll each image into view and record its effective source."""
        from playwright.async_api import Error as PlaywrightError

        browser_page: Any = page.handle["page"]
        try:
            images = await browser_page.query_selector_all("img")
            logger.debug("Scrolling {} images into view on {}", len(images), page.final_url)
            for image in images:
                await image.scroll_into_view_if_needed()
                await browser_page.wait_for_timeout(self.scroll_pause * 1000)
                source = await image.evaluate("img => img.currentSrc || img.src")
                if source:
                    found.append(source)
            # Pick up images inserted while scrolling
            found.extend(src for src in await browser_page.evaluate(IMAGE_SOURCES_JS) if src)
        except PlaywrightError as e:
            raise FetchError(f"Lazy-load scan of {page.final_url} failed", url=page.url) from e

    async def close(self, page: RenderedPage) -> None:
        """Close the browser and stop Playwright."""
        if not page.handle:
            return
        await _shutdown(page.handle["playwright"], page.handle["browser"])


async def _shutdown(playwright: Any, browser: Any) -> None:
    try:
        if browser is not None:
            await browser.close()
    finally:
        await playwright.stop()


def create_page_renderer(
    renderer_type: str = "http",
    client: httpx.AsyncClient | None = None,
    navigation_timeout: float = 30.0,
) -> PageRenderer:
    """
    Factory function to create a page renderer.

    Args:
        renderer_type: Type of renderer ("http" or "playwright")
        client: HTTP client, required for the "http" renderer
        navigation_timeout: Navigation timeout for the browser renderer

    Returns:
        Configured PageRenderer instance

    Raises:
        ValueError: If renderer_type is not recognized or a client is missing
    """
    if renderer_type == "http":
        if client is None:
            raise ValueError("The http renderer requires an HTTP client")
        return HttpPageRenderer(client)
    elif renderer_type == "playwright":
        return PlaywrightPageRenderer(navigation_timeout=navigation_timeout)
    else:
        raise ValueError(f"Unknown page renderer: {renderer_type}")
