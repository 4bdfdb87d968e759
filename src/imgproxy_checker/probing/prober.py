"""
Byte-size measurement for images.

Data URIs are measured locally. Network URLs are measured with a HEAD probe
when the origin reports a usable Content-Length, falling back to a streamed
GET that counts received bytes.
"""

import base64
import binascii
import re
from urllib.parse import unquote_to_bytes

import httpx
from loguru import logger

from ..errors import DecodeError, FetchError, RedirectLoopError
from ..extraction.resolver import is_data_uri

# A percent sign not followed by two hex digits
BAD_PERCENT_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def decode_data_uri(uri: str) -> bytes:
    """
    Decode the payload of a ``data:`` URI.

    Args:
        uri: Full data URI

    Returns:
        Decoded payload bytes

    Raises:
        DecodeError: If the URI has no payload separator or the payload is malformed
    """
    header, sep, payload = uri.partition(",")
    if not sep:
        raise DecodeError("Invalid data URI: missing ','", url=uri[:64])

    params = [p.strip().lower() for p in header[5:].split(";")]
    if "base64" in params[1:]:
        try:
            return base64.b64decode(unquote_to_bytes(payload), validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError("Invalid base64 payload in data URI", url=uri[:64]) from e

    if BAD_PERCENT_RE.search(payload):
        raise DecodeError("Invalid percent-encoding in data URI", url=uri[:64])
    return unquote_to_bytes(payload)


def parse_content_length(value: str | None) -> int | None:
    """Return a non-negative Content-Length, or None if absent or unparseable."""
    if value is None:
        return None
    try:
        length = int(value.strip())
    except ValueError:
        return None
    return length if length >= 0 else None


class SizeProber:
    """Measures the byte size of images."""

    def __init__(self, client: httpx.AsyncClient):
        """
        Initialize the prober.

        Args:
            client: HTTP client configured with redirect following, the
                redirect cap and a per-request timeout
        """
        self.client = client

    async def measure(self, url: str) -> int:
        """
        Measure the size of an image in bytes.

        Args:
            url: Absolute image URL or data URI

        Returns:
            Size in bytes

        Raises:
            DecodeError: For malformed data URIs
            RedirectLoopError: If the redirect cap is exceeded
            FetchError: On transport failure or non-success status
        """
        if is_data_uri(url):
            return len(decode_data_uri(url))

        size = await self._head_size(url)
        if size is not None:
            logger.debug("HEAD {} -> {} bytes", url[:80], size)
            return size

        size = await self._get_size(url)
        logger.debug("GET {} -> {} bytes", url[:80], size)
        return size

    async def download(self, url: str) -> tuple[bytes, str]:
        """
        Download an image.

        Returns:
            Tuple of (content, content_type)

        Raises:
            RedirectLoopError: If the redirect cap is exceeded
            FetchError: On transport failure or non-success status
        """
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.TooManyRedirects as e:
            raise RedirectLoopError(f"Too many redirects fetching {url}", url=url) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Error downloading {url}", url=url) from e
        content_type = response.headers.get("content-type", "application/octet-stream")
        return response.content, content_type

    async def _head_size(self, url: str) -> int | None:
        """Return the declared size from a HEAD probe, or None to fall back."""
        try:
            response = await self.client.head(url)
        except httpx.TooManyRedirects as e:
            raise RedirectLoopError(f"Too many redirects probing {url}", url=url) from e
        except httpx.HTTPError as e:
            logger.debug("HEAD failed for {}, falling back to GET: {}", url[:80], e)
            return None

        if not response.is_success:
            logger.debug("HEAD {} returned {}, falling back to GET", url[:80], response.status_code)
            return None
        return parse_content_length(response.headers.get("content-length"))

    async def _get_size(self, url: str) -> int:
        """Fetch the body and count the bytes received."""
        try:
            async with self.client.stream("GET", url) as response:
                response.raise_for_status()
                size = 0
                async for chunk in response.aiter_bytes():
                    size += len(chunk)
                return size
        except httpx.TooManyRedirects as e:
            raise RedirectLoopError(f"Too many redirects fetching {url}", url=url) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Error fetching image size for {url}", url=url) from e
