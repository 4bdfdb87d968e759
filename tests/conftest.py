"""Pytest fixtures and configuration for imgproxy-checker tests.

This module provides shared fixtures for testing extraction, probing, the size
cache, the worker pool and the HTTP server.
"""

import asyncio
import base64
import tempfile
from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import httpx
import pytest

from imgproxy_checker.cache import InMemorySizeCache
from imgproxy_checker.config import Settings
from imgproxy_checker.extraction.base import PageRenderer, RenderedPage
from imgproxy_checker.probing import SizeProber, StagingStore

PROXY_HOST = "imgproxy.test"
PUBLIC_BASE_URL = "https://checker.test"


# --- Temporary Directory Fixtures ---


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


# --- Sample Data Fixtures ---


@pytest.fixture
def sample_png_bytes() -> bytes:
    """Return the bytes of a 1x1 transparent PNG."""
    return base64.b64decode(
        "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
    )


@pytest.fixture
def sample_page_html() -> str:
    """Page with two identical <img> tags and one CSS background image."""
    return """
    <html>
      <head><title>Gallery</title></head>
      <body>
        <img src="/images/photo.jpg" alt="Photo">
        <img src="https://example.com/images/photo.jpg" alt="Same photo">
        <div style="background-image: url('/images/hero.png')"></div>
        <img src="/images/logo.svg" alt="Logo">
      </body>
    </html>
    """


# --- Settings Fixtures ---


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Settings pointing at test hosts and a temporary cache."""
    return Settings(
        proxy_host=PROXY_HOST,
        public_base_url=PUBLIC_BASE_URL,
        workers=3,
        fetch_timeout=5.0,
        lazy_load_timeout=0.2,
        cache_type="memory",
        cache_path=str(temp_dir / "image_data.db"),
        renderer="http",
        always_stage=False,
    )


# --- Component Fixtures ---


@pytest.fixture
async def http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client configured like the production one."""
    async with httpx.AsyncClient(follow_redirects=True, max_redirects=10, timeout=5.0) as client:
        yield client


@pytest.fixture
def prober(http_client: httpx.AsyncClient) -> SizeProber:
    """Size prober using the test HTTP client."""
    return SizeProber(http_client)


@pytest.fixture
def staging_store() -> StagingStore:
    """Empty staging store."""
    return StagingStore()


@pytest.fixture
def memory_cache() -> InMemorySizeCache:
    """Empty in-memory size cache."""
    return InMemorySizeCache()


class StaticRenderer(PageRenderer):
    """Renderer that returns fixed markup and optional lazy discoveries."""

    def __init__(
        self,
        html: str,
        lazy_urls: list[str] | None = None,
        hang: bool = False,
        error: Exception | None = None,
    ):
        self.html = html
        self.lazy_urls = lazy_urls or []
        self.hang = hang
        self.error = error
        self.closed = False

    async def render(self, url: str) -> RenderedPage:
        return RenderedPage(url=url, final_url=url, html=self.html)

    async def discover_lazy_images(self, page: RenderedPage, found: list[str]) -> None:
        found.extend(self.lazy_urls)
        if self.error is not None:
            raise self.error
        if self.hang:
            await asyncio.sleep(3600)

    async def close(self, page: RenderedPage) -> None:
        self.closed = True


@pytest.fixture
def make_renderer():
    """Factory for StaticRenderer instances."""
    return StaticRenderer
