"""
Data models and renderer interface for reference extraction.

The renderer is the collaborator that loads a page (and optionally walks its
live DOM); the extractor only consumes the markup and lazy-load discoveries it
reports.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SourceKind(str, Enum):
    """Where on the page a reference was found."""

    IMG_ATTR = "img_attr"
    INLINE_STYLE = "inline_style"
    EXTERNAL_STYLE = "external_style"
    INLINE_SCRIPT = "inline_script"
    EXTERNAL_SCRIPT = "external_script"


class ImageReference(BaseModel):
    """A raw string found on a page that might point to an image."""

    model_config = ConfigDict(frozen=True)

    raw: str = Field(description="Reference exactly as found in the source")
    source_kind: SourceKind = Field(description="Source the reference came from")
    base_url: str = Field(
        description="URL the reference resolves against (page URL, or stylesheet URL)"
    )


class RenderedPage(BaseModel):
    """Markup of a loaded page plus renderer-owned state."""

    url: str = Field(description="URL that was requested")
    final_url: str = Field(description="URL after redirects; base for relative references")
    html: str = Field(description="Page markup")
    handle: Any = Field(default=None, exclude=True, description="Renderer-specific page object")


class PageRenderer(ABC):
    """Abstract interface for loading pages.

    Enables swapping between a plain HTTP fetch and a headless browser.
    """

    @abstractmethod
    async def render(self, url: str) -> RenderedPage:
        """
        Load a page and return its markup.

        Args:
            url: Absolute page URL

        Returns:
            The rendered page

        Raises:
            FetchError: If the page cannot be loaded
        """
        pass

    async def discover_lazy_images(self, page: RenderedPage, found: list[str]) -> None:
        """
        Trigger lazy-loading and report image URLs that become visible.

        Implementations append to ``found`` as they go, so a caller that
        cancels this coroutine keeps everything discovered so far.

        Args:
            page: Page returned by ``render``
            found: Sink for discovered image URLs
        """
        return None

    async def close(self, page: RenderedPage) -> None:
        """Release resources held for a rendered page."""
        return None
