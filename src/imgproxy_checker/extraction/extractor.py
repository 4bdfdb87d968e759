"""
Image reference extraction.

Scans page markup, style text and script text for candidate image URLs.
Style and script scanning is regex based and therefore best-effort: URLs
built at runtime, nested quotes and heavily minified code are missed.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Iterable
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from ..errors import FetchError, ParseError
from .base import ImageReference, PageRenderer, RenderedPage, SourceKind
from .resolver import ACCEPTED_EXTENSIONS

# url(...) in CSS, quoted or unquoted
CSS_URL_RE = re.compile(r"""url\(\s*['"]?(.*?)['"]?\s*\)""", re.IGNORECASE)

# Quoted absolute or protocol-relative literals ending in an image extension
JS_IMAGE_RE = re.compile(
    r"""['"]((?:https?:)?//[^'"\s]+\.(?:"""
    + "|".join(sorted(ACCEPTED_EXTENSIONS))
    + r""")(?:\?[^'"\s]*)?)['"]""",
    re.IGNORECASE,
)

# Attributes that hold a single image URL
IMG_URL_ATTRS = ("src", "data-src", "data-lazy-src", "data-original")

# Attributes that hold a srcset candidate list
SRCSET_ATTRS = ("srcset", "data-srcset")


def scan_style(text: str) -> list[str]:
    """Return every ``url(...)`` target in a block of CSS."""
    return [match.strip() for match in CSS_URL_RE.findall(text) if match.strip()]


def scan_script(text: str) -> list[str]:
    """Return quoted image URL literals found in script text."""
    return JS_IMAGE_RE.findall(text)


def parse_srcset(value: str) -> list[str]:
    """Split a srcset attribute into its candidate URLs."""
    urls = []
    for candidate in value.split(","):
        parts = candidate.strip().split()
        if parts:
            urls.append(parts[0])
    return urls


class ReferenceExtractor:
    """Collects image references from a page and its linked resources."""

    def __init__(
        self,
        renderer: PageRenderer,
        client: httpx.AsyncClient,
        lazy_load_timeout: float = 3.0,
        scan_scripts: bool = True,
    ):
        """
        Initialize the extractor.

        Args:
            renderer: Collaborator that loads the page
            client: HTTP client used to fetch stylesheets and scripts
            lazy_load_timeout: Seconds allowed for the lazy-load discovery phase
            scan_scripts: Whether to scan script text for image literals
        """
        self.renderer = renderer
        self.client = client
        self.lazy_load_timeout = lazy_load_timeout
        self.scan_scripts = scan_scripts

    async def extract(self, page_url: str) -> list[ImageReference]:
        """
        Load a page and return every image reference found on it.

        Raises:
            FetchError: If the page itself cannot be loaded
            ParseError: If the page markup cannot be parsed
        """
        page = await self.renderer.render(page_url)
        try:
            lazy_urls = await self._discover_lazy(page)
            references = await self.extract_from_html(page.html, page.final_url)
        finally:
            await self.renderer.close(page)

        references.extend(
            ImageReference(raw=url, source_kind=SourceKind.IMG_ATTR, base_url=page.final_url)
            for url in lazy_urls
        )
        logger.info("Extracted {} references from {}", len(references), page_url)
        return references

    async def extract_from_html(self, html: str, base_url: str) -> list[ImageReference]:
        """Extract references from markup, fetching linked stylesheets and scripts."""
        try:
            soup = BeautifulSoup(html, "html.parser")
        except Exception as e:
            raise ParseError(f"Could not parse page markup: {e}", url=base_url) from e

        references = list(self._from_markup(soup, base_url))
        references.extend(self._from_inline_styles(soup, base_url))

        stylesheet_urls = _resolve_all(
            base_url,
            (link["href"] for link in soup.find_all("link", href=True) if "stylesheet" in _rel_values(link)),
        )
        script_urls: list[str] = []
        if self.scan_scripts:
            references.extend(self._from_inline_scripts(soup, base_url))
            script_urls = _resolve_all(
                base_url, (script["src"] for script in soup.find_all("script", src=True))
            )

        tasks = [self._from_external_style(url) for url in stylesheet_urls]
        tasks += [self._from_external_script(url, base_url) for url in script_urls]
        for found in await asyncio.gather(*tasks):
            references.extend(found)

        logger.debug(
            "Markup scan of {}: {} references, {} stylesheets, {} scripts",
            base_url,
            len(references),
            len(stylesheet_urls),
            len(script_urls),
        )
        return references

    async def _discover_lazy(self, page: RenderedPage) -> list[str]:
        """Run the renderer's lazy-load phase under a hard deadline."""
        found: list[str] = []
        try:
            await asyncio.wait_for(
                self.renderer.discover_lazy_images(page, found),
                timeout=self.lazy_load_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Lazy-load discovery timed out after {}s; keeping {} references",
                self.lazy_load_timeout,
                len(found),
            )
        except FetchError as e:
            logger.warning("Lazy-load discovery failed for {}: {}", page.url, e.detail)
        except Exception as e:
            logger.warning(
                "Lazy-load discovery failed for {} ({}: {}); keeping {} references",
                page.url,
                type(e).__name__,
                e,
                len(found),
            )
        return list(found)

    def _from_markup(self, soup: BeautifulSoup, base_url: str) -> Iterable[ImageReference]:
        for img in soup.find_all("img"):
            for attr in IMG_URL_ATTRS:
                value = img.get(attr)
                if value:
                    yield ImageReference(
                        raw=value, source_kind=SourceKind.IMG_ATTR, base_url=base_url
                    )
        for tag in soup.find_all(["img", "source"]):
            for attr in SRCSET_ATTRS:
                value = tag.get(attr)
                if value:
                    for url in parse_srcset(value):
                        yield ImageReference(
                            raw=url, source_kind=SourceKind.IMG_ATTR, base_url=base_url
                        )
        for video in soup.find_all("video", poster=True):
            yield ImageReference(
                raw=video["poster"], source_kind=SourceKind.IMG_ATTR, base_url=base_url
            )

    def _from_inline_styles(self, soup: BeautifulSoup, base_url: str) -> Iterable[ImageReference]:
        for tag in soup.find_all(style=True):
            for url in scan_style(tag["style"]):
                yield ImageReference(
                    raw=url, source_kind=SourceKind.INLINE_STYLE, base_url=base_url
                )
        for block in soup.find_all("style"):
            for url in scan_style(block.get_text()):
                yield ImageReference(
                    raw=url, source_kind=SourceKind.INLINE_STYLE, base_url=base_url
                )

    def _from_inline_scripts(self, soup: BeautifulSoup, base_url: str) -> Iterable[ImageReference]:
        for script in soup.find_all("script", src=False):
            for url in scan_script(script.get_text()):
                yield ImageReference(
                    raw=url, source_kind=SourceKind.INLINE_SCRIPT, base_url=base_url
                )

    async def _from_external_style(self, url: str) -> list[ImageReference]:
        # url() inside a stylesheet is relative to the stylesheet itself
        text = await self._fetch_text(url)
        return [
            ImageReference(raw=ref, source_kind=SourceKind.EXTERNAL_STYLE, base_url=url)
            for ref in scan_style(text)
        ]

    async def _from_external_script(self, url: str, base_url: str) -> list[ImageReference]:
        text = await self._fetch_text(url)
        return [
            ImageReference(raw=ref, source_kind=SourceKind.EXTERNAL_SCRIPT, base_url=base_url)
            for ref in scan_script(text)
        ]

    async def _fetch_text(self, url: str) -> str:
        """Fetch a sub-resource; any failure yields an empty string."""
        try:
            response = await self.client.get(url)
            response.raise_for_status()
            return response.text
        except (httpx.HTTPError, httpx.InvalidURL, UnicodeDecodeError) as e:
            logger.warning("Skipping sub-resource {}: {}", url, e)
            return ""


def _resolve_all(base_url: str, hrefs: Iterable[str]) -> list[str]:
    """Resolve sub-resource links, dropping any that are not valid URLs."""
    urls = []
    for href in hrefs:
        try:
            urls.append(urljoin(base_url, href.strip()))
        except ValueError as e:
            logger.warning("Skipping malformed sub-resource URL {!r}: {}", href, e)
    return urls


def _rel_values(tag) -> list[str]:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [value.lower() for value in rel]
