"""
HTTP server for image savings reports.

Serves plain-text savings reports at ``GET /?url=<page-url>``, staged originals
for the optimization proxy at ``GET /images/<key>``, and exposes the report as
an MCP tool.
"""

from __future__ import annotations

import time

from fastmcp import FastMCP
from loguru import logger
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response, StreamingResponse

from .cache import SizeCache, create_size_cache
from .config import settings
from .errors import CacheError, ImgproxyCheckerError
from .pipeline import PageAnalyzer
from .probing import StagingStore
from .report import Report, render_report, render_report_lines

# Initialize components lazily (on first request)
_staging_store = None
_size_cache = None
_size_cache_failed = False


def get_staging_store() -> StagingStore:
    """Get or create the staging store shared by the report and image routes."""
    global _staging_store
    if _staging_store is None:
        _staging_store = StagingStore()
        logger.debug("Staging store initialized")
    return _staging_store


def get_size_cache() -> SizeCache | None:
    """Get or create the size cache (None if it cannot be opened)."""
    global _size_cache, _size_cache_failed
    if _size_cache is None and not _size_cache_failed:
        try:
            _size_cache = create_size_cache(settings.cache_type, settings.cache_file)
            logger.info("Size cache initialized: {} at {}", settings.cache_type, settings.cache_path)
        except CacheError as e:
            _size_cache_failed = True
            logger.error("Size cache unavailable, continuing without it: {}", e.detail)
    return _size_cache


async def analyze_page(page_url: str) -> Report:
    """Run the pipeline for one page with the server's shared stores."""
    async with PageAnalyzer(
        config=settings,
        cache=get_size_cache(),
        staging=get_staging_store(),
    ) as analyzer:
        return await analyzer.analyze(page_url)


# Create MCP server
mcp = FastMCP(
    name="imgproxy-checker",
    instructions=(
        "Estimates how many bytes a web page would save by serving its images "
        "through an image optimization proxy, with download time estimates "
        "for 2G, 3G, 4G and Wi-Fi connections."
    ),
)


@mcp.custom_route("/", methods=["GET"])
async def page_report(request: Request) -> Response:
    """Stream a plain-text savings report for the page in the ``url`` query parameter."""
    start = time.perf_counter()
    page_url = request.query_params.get("url", "").strip()
    if not page_url:
        return PlainTextResponse("Please provide a URL parameter.", status_code=400)

    logger.info("Report request: url='{}'", page_url)
    try:
        report = await analyze_page(page_url)
    except ImgproxyCheckerError as e:
        logger.warning("Report failed for {}: {}", page_url, e.detail)
        return PlainTextResponse(f"Error fetching URL: {e.detail}", status_code=502)

    elapsed = time.perf_counter() - start
    return StreamingResponse(
        render_report_lines(report, elapsed),
        media_type="text/plain; charset=utf-8",
    )


@mcp.custom_route("/images/{key}", methods=["GET"])
async def serve_staged_image(request: Request) -> Response:
    """Serve a staged original image by its content key."""
    key = request.path_params["key"]
    staged = get_staging_store().get(key)
    if staged is None:
        logger.debug("Unknown staged image requested: {}", key)
        return PlainTextResponse("Not Found", status_code=404)
    return Response(content=staged.content, media_type=staged.content_type)


@mcp.tool()
async def estimate_image_savings(url: str) -> str:
    """
    Estimate bandwidth savings of serving a page's images through the optimization proxy.

    Args:
        url: Absolute URL of the page to analyze

    Returns:
        Plain-text report with per-image sizes, totals and loading times
    """
    logger.info("Savings tool request: url='{}'", url)
    start = time.perf_counter()
    try:
        report = await analyze_page(url)
    except ImgproxyCheckerError as e:
        return f"Error fetching URL: {e.detail}"
    return render_report(report, time.perf_counter() - start)


# Export for uvicorn
def create_app():
    """Create the HTTP application (report, staging and MCP endpoints)."""
    return mcp.http_app(path="/mcp")
