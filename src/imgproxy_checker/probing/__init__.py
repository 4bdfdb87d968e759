"""
Size probing package.

Measures original and proxy-optimized image sizes.
"""

from .base import SizeResult, WorkItem
from .optimizer import OptimizationRequester, build_proxy_url
from .prober import SizeProber, decode_data_uri
from .staging import StagedImage, StagingStore

__all__ = [
    "OptimizationRequester",
    "SizeProber",
    "SizeResult",
    "StagedImage",
    "StagingStore",
    "WorkItem",
    "build_proxy_url",
    "decode_data_uri",
]
