"""
CLI for the imgproxy-checker service.

Commands:
- serve: Start the HTTP server
- analyze: Analyze a single page and print the savings report
- info: Show configuration and cache status
- clear-cache: Delete cached size measurements
"""

import asyncio
import time

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from .config import settings
from .logging import setup_logging
from .probing.optimizer import is_private_host
from .report import format_size

app = typer.Typer(
    name="imgproxy-checker",
    help="Estimate image bandwidth savings of an image optimization proxy",
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """imgproxy-checker - image optimization savings for any web page."""
    log_level = "DEBUG" if verbose else settings.log_level
    setup_logging(level=log_level, json_output=settings.log_json)
    logger.debug("CLI initialized with log level: {}", log_level)


@app.command()
def serve(
    host: str = typer.Option(settings.host, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(settings.port, "--port", "-p", help="Port to bind to"),
):
    """Start the HTTP server (report, staging and MCP endpoints)."""
    from .server import mcp

    logger.info("Starting server on {}:{}", host, port)
    console.print("[bold blue]Starting imgproxy-checker[/]")
    console.print(f"Report endpoint: http://{host}:{port}/?url=<page-url>")
    console.print(f"Staging endpoint: {settings.public_base_url.rstrip('/')}/images/<key>")
    console.print(f"MCP endpoint: http://{host}:{port}/mcp")
    console.print()

    if is_private_host(settings.public_base_url):
        logger.warning("PUBLIC_BASE_URL {} is not public", settings.public_base_url)
        console.print(
            "[red]Warning: PUBLIC_BASE_URL is not public. "
            "Optimized sizes of images on private hosts will fail.[/]"
        )

    mcp.run(transport="http", host=host, port=port, path="/mcp")


@app.command()
def analyze(
    url: str = typer.Argument(..., help="Page URL to analyze"),
    workers: int = typer.Option(settings.workers, "--workers", "-w", help="Concurrent workers"),
    renderer: str = typer.Option(
        settings.renderer, "--renderer", "-r", help="Page renderer: http or playwright"
    ),
    use_cache: bool = typer.Option(True, "--cache/--no-cache", help="Use the size cache"),
):
    """Analyze a page and print per-image and total savings.

    No staging endpoint runs during a one-off analysis, so originals are never
    staged: public images go straight to the proxy.
    """
    from .cache import create_size_cache
    from .errors import ImgproxyCheckerError
    from .pipeline import PageAnalyzer

    config = settings.model_copy(
        update={"workers": workers, "renderer": renderer, "always_stage": False}
    )
    logger.info("Analyzing {} (workers={}, renderer={})", url, workers, renderer)
    if is_private_host(url):
        console.print(
            "[yellow]Images on private hosts need a staging server; "
            "run `imgproxy-checker serve` with a public PUBLIC_BASE_URL instead.[/]"
        )

    async def run_analysis():
        cache = create_size_cache(config.cache_type, config.cache_file) if use_cache else None
        try:
            async with PageAnalyzer(config=config, cache=cache) as analyzer:
                return await analyzer.analyze(url)
        finally:
            if cache is not None:
                cache.close()

    start = time.perf_counter()
    try:
        report = asyncio.run(run_analysis())
    except ImgproxyCheckerError as e:
        logger.error("Analysis failed: {}", e.detail)
        console.print(f"[red]Error: {e.detail}[/]")
        raise typer.Exit(1) from e
    elapsed = time.perf_counter() - start

    table = Table(title=f"Images on {url}")
    table.add_column("Image", style="cyan", overflow="fold")
    table.add_column("Original", style="green", justify="right")
    table.add_column("Optimized", style="green", justify="right")
    table.add_column("Status")
    for result in report.per_image:
        if result.ok:
            status = "cached" if result.from_cache else "ok"
            table.add_row(
                result.image_url[:120],
                format_size(result.original_size),
                format_size(result.optimized_size),
                status,
            )
        else:
            error = result.original_error or result.optimized_error
            table.add_row(result.image_url[:120], "-", "-", f"[red]{error.value}[/]")
    console.print(table)

    console.print(f"\nTotal image size: {format_size(report.total_original)}")
    console.print(f"Total optimized image size: {format_size(report.total_optimized)}")
    console.print(
        f"Size difference: [bold]{format_size(report.savings)}[/] ({report.savings_ratio:.1%})"
    )
    if report.failed:
        console.print(f"[yellow]{len(report.failed)} images failed[/]")

    times = Table(title="Loading times (Original / Optimized)")
    times.add_column("Connection", style="cyan")
    times.add_column("Original", justify="right")
    times.add_column("Optimized", justify="right")
    for name, loading in report.loading_times.items():
        times.add_row(name, f"{loading.original:.2f}s", f"{loading.optimized:.2f}s")
    console.print(times)
    console.print(f"Processing time: {elapsed:.2f}s")


@app.command()
def info():
    """Show configuration and size cache status."""
    logger.debug("Displaying configuration and status")
    console.print("[bold blue]imgproxy-checker Configuration[/]")

    table = Table(title="Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Proxy Host", settings.proxy_host)
    table.add_row("Public Base URL", settings.public_base_url)
    table.add_row("Always Stage", str(settings.always_stage))
    table.add_row("Workers", str(settings.workers))
    table.add_row("Max Redirects", str(settings.max_redirects))
    table.add_row("Fetch Timeout", f"{settings.fetch_timeout}s")
    table.add_row("Renderer", settings.renderer)
    table.add_row("Lazy-load Timeout", f"{settings.lazy_load_timeout}s")
    table.add_row("Scan Scripts", str(settings.scan_scripts))
    table.add_row("Cache Type", settings.cache_type)
    table.add_row("Cache Path", settings.cache_path)
    table.add_row("Cache TTL", f"{settings.cache_ttl_hours}h")
    table.add_row("Server Host", settings.host)
    table.add_row("Server Port", str(settings.port))

    console.print(table)

    console.print("\n[bold]Size Cache Status[/]")
    try:
        from .cache import create_size_cache

        cache = create_size_cache(settings.cache_type, settings.cache_file)
        try:
            count = asyncio.run(cache.count())
        finally:
            cache.close()
        logger.debug("Size cache status: {} entries", count)
        console.print(f"Cached measurements: {count}")
    except Exception as e:
        logger.error("Error accessing size cache: {}", e)
        console.print(f"[red]Error accessing size cache: {e}[/]")


@app.command()
def clear_cache(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete all cached size measurements."""
    from .cache import create_size_cache

    if not yes and not typer.confirm(f"Delete all cached measurements in {settings.cache_path}?"):
        raise typer.Exit(0)

    cache = create_size_cache(settings.cache_type, settings.cache_file)
    try:
        asyncio.run(cache.clear())
    finally:
        cache.close()
    console.print("[yellow]Size cache cleared[/]")


if __name__ == "__main__":
    app()
