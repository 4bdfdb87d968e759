"""
Optimization proxy requests.

Builds proxy URLs and measures the optimized size of an image, staging a
public copy of the original first when the proxy could not fetch it itself.
"""

import ipaddress
import posixpath
from urllib.parse import quote, urlparse

from loguru import logger

from ..errors import FetchError, StagingError
from ..extraction.resolver import is_data_uri
from .prober import SizeProber
from .staging import StagingStore

# Characters kept unescaped in a path segment (everything else is escaped)
PATH_SEGMENT_SAFE = "$&+:=@"

PROXY_TARGET_FORMAT = "avif"


def build_proxy_url(proxy_host: str, source_url: str) -> str:
    """
    Build the proxy URL that serves an optimized version of ``source_url``.

    Example:
        >>> build_proxy_url("imgproxy.example.org", "https://a.com/b.png")
        'https://imgproxy.example.org/unsafe/plain/https:%2F%2Fa.com%2Fb.png@avif'
    """
    escaped = quote(source_url, safe=PATH_SEGMENT_SAFE)
    return f"https://{proxy_host}/unsafe/plain/{escaped}@{PROXY_TARGET_FORMAT}"


def is_private_host(url: str) -> bool:
    """Return True if the URL's host is not reachable from the public internet."""
    host = (urlparse(url).hostname or "").lower()
    if not host or host == "localhost" or host.endswith((".localhost", ".local")):
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return address.is_private or address.is_loopback or address.is_link_local


class OptimizationRequester:
    """Measures the proxy-optimized size of images."""

    def __init__(
        self,
        prober: SizeProber,
        staging: StagingStore,
        proxy_host: str,
        public_base_url: str,
        always_stage: bool = False,
    ):
        """
        Initialize the requester.

        Args:
            prober: Prober used for downloads and size measurement
            staging: Store holding temporarily public originals
            proxy_host: Host name of the optimization proxy
            public_base_url: Public base URL of this service's staging endpoint
            always_stage: Stage every original, not only non-public ones
        """
        self.prober = prober
        self.staging = staging
        self.proxy_host = proxy_host
        self.public_base_url = public_base_url.rstrip("/")
        self.always_stage = always_stage

    def needs_staging(self, url: str) -> bool:
        """Whether the original must be staged before the proxy can fetch it."""
        return self.always_stage or is_private_host(url)

    def staged_url(self, key: str) -> str:
        """Public URL of a staged image."""
        return f"{self.public_base_url}/images/{key}"

    async def measure_optimized(self, url: str) -> int:
        """
        Measure the optimized size of an image.

        Data URIs are measured as-is, since the proxy needs a public URL to
        transform anything; their "optimized" size equals the original size.

        Raises:
            StagingError: If a public copy of the original could not be staged
            FetchError: If the proxy request fails
            DecodeError: For malformed data URIs
        """
        if is_data_uri(url):
            return await self.prober.measure(url)

        if not self.needs_staging(url):
            return await self.prober.measure(build_proxy_url(self.proxy_host, url))

        key = await self._stage_original(url)
        try:
            proxy_url = build_proxy_url(self.proxy_host, self.staged_url(key))
            logger.debug("Probing optimized size of {} via {}", url[:80], proxy_url[:120])
            return await self.prober.measure(proxy_url)
        finally:
            self.staging.release(key)

    async def _stage_original(self, url: str) -> str:
        try:
            content, content_type = await self.prober.download(url)
        except FetchError as e:
            raise StagingError(f"Could not download original for staging: {url}", url=url) from e

        if not content:
            raise StagingError(f"Original is empty, nothing to stage: {url}", url=url)

        suffix = posixpath.splitext(urlparse(url).path)[1].lower()
        return self.staging.stage(content, content_type, suffix=suffix)
