"""
URL resolution and validation for image references.

Rejection is silent: ``resolve`` returns None for anything that is not an
image URL we can measure, and extraction carries on.
"""

import re
from urllib.parse import urldefrag, urljoin, urlparse

from pydantic import BaseModel, ConfigDict, Field

ACCEPTED_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp", "bmp", "tiff", "avif"})

IMAGE_PATH_RE = re.compile(
    r"\.(?:" + "|".join(sorted(ACCEPTED_EXTENSIONS)) + r")$",
    re.IGNORECASE,
)


class ResolvedImageURL(BaseModel):
    """An absolute, validated image URL, or a self-contained data URI."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(description="Absolute URL or full data URI")
    is_data: bool = Field(default=False, description="True for data: URIs")


def is_data_uri(raw: str) -> bool:
    """Return True if ``raw`` is a ``data:`` URI."""
    return raw[:5].lower() == "data:"


def is_valid_image_url(url: str) -> bool:
    """
    Check that a URL is an absolute, non-SVG image URL.

    ``data:`` URIs are rejected here; they take the data URI path instead.
    Query strings and fragments are ignored when matching the extension.
    """
    if is_data_uri(url):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if not parsed.scheme:
        return False
    path = parsed.path.lower()
    if path.endswith(".svg"):
        return False
    return bool(IMAGE_PATH_RE.search(path))


def resolve(raw: str, base_url: str) -> ResolvedImageURL | None:
    """
    Resolve a raw reference against a base URL and validate it.

    Args:
        raw: Reference as found on the page
        base_url: Page or stylesheet URL the reference is relative to

    Returns:
        The resolved URL, or None if the reference is rejected
    """
    candidate = raw.strip()
    if not candidate:
        return None

    if is_data_uri(candidate):
        return ResolvedImageURL(url=candidate, is_data=True)

    try:
        absolute, _fragment = urldefrag(urljoin(base_url, candidate))
    except ValueError:
        return None

    if not is_valid_image_url(absolute):
        return None
    return ResolvedImageURL(url=absolute)
