"""
Image reference extraction package.

Loads pages through a renderer and turns markup, styles and scripts into
resolved image URLs.
"""

from .base import ImageReference, PageRenderer, RenderedPage, SourceKind
from .extractor import ReferenceExtractor
from .renderers import HttpPageRenderer, PlaywrightPageRenderer, create_page_renderer
from .resolver import ACCEPTED_EXTENSIONS, ResolvedImageURL, is_valid_image_url, resolve

__all__ = [
    "ACCEPTED_EXTENSIONS",
    "HttpPageRenderer",
    "ImageReference",
    "PageRenderer",
    "PlaywrightPageRenderer",
    "ReferenceExtractor",
    "RenderedPage",
    "ResolvedImageURL",
    "SourceKind",
    "create_page_renderer",
    "is_valid_image_url",
    "resolve",
]
