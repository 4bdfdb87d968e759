"""
imgproxy-checker.

Estimates the bandwidth savings of serving a web page's images through an
image optimization proxy.

Usage:
    # Start server, then GET /?url=https://example.com
    imgproxy-checker serve

    # Analyze one page from the terminal
    imgproxy-checker analyze https://example.com

    # Check configuration and cache
    imgproxy-checker info
"""

__version__ = "0.1.0"

from .pipeline import PageAnalyzer
from .report import Report, estimate_loading_times

__all__ = [
    "PageAnalyzer",
    "Report",
    "estimate_loading_times",
]
