"""
Image size pipeline.

Turns a page URL into a savings report: extract references, resolve and
deduplicate them, then measure original and optimized sizes with a bounded
pool of workers, reusing fresh cached measurements.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Awaitable, Callable, Iterable
from datetime import timedelta

import httpx
from loguru import logger

from .cache import CacheEntry, FreshnessPolicy, SizeCache
from .config import Settings, settings as default_settings
from .errors import CacheError, ErrorKind, ImgproxyCheckerError
from .extraction import (
    ImageReference,
    PageRenderer,
    ReferenceExtractor,
    create_page_renderer,
    resolve,
)
from .probing import OptimizationRequester, SizeProber, SizeResult, StagingStore, WorkItem
from .report import Report

Clock = Callable[[], float]


class Deduplicator:
    """Tracks which resolved URLs have been scheduled in one run."""

    def __init__(self):
        self._scheduled: set[str] = set()
        self._lock = threading.Lock()

    def should_schedule(self, url: str) -> bool:
        """Return True the first time a URL is seen, marking it scheduled."""
        with self._lock:
            if url in self._scheduled:
                return False
            self._scheduled.add(url)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._scheduled)


def schedule_work_items(
    page_url: str,
    references: Iterable[ImageReference],
    dedup: Deduplicator,
) -> list[WorkItem]:
    """Resolve references and return one work item per distinct image URL."""
    items = []
    rejected = 0
    for reference in references:
        resolved = resolve(reference.raw, reference.base_url)
        if resolved is None:
            rejected += 1
            continue
        if dedup.should_schedule(resolved.url):
            items.append(WorkItem(page_url=page_url, image_url=resolved))
    logger.debug("Scheduled {} images ({} references rejected)", len(items), rejected)
    return items


class ImageProcessor:
    """Produces the SizeResult for a single work item."""

    def __init__(
        self,
        prober: SizeProber,
        requester: OptimizationRequester,
        cache: SizeCache | None = None,
        freshness: FreshnessPolicy | None = None,
        clock: Clock = time.time,
    ):
        """
        Initialize the processor.

        Args:
            prober: Measures original sizes
            requester: Measures optimized sizes through the proxy
            cache: Optional size cache consulted before any network work
            freshness: Policy deciding whether a cached entry is reusable
            clock: Returns the current Unix time
        """
        self.prober = prober
        self.requester = requester
        self.cache = cache
        self.freshness = freshness or FreshnessPolicy()
        self.clock = clock

    async def process(self, item: WorkItem) -> SizeResult:
        """Measure one image; probe failures are recorded on the result."""
        url = item.image_url.url

        cached = await self._lookup(item)
        if cached is not None:
            return cached

        fetched_at = int(self.clock())
        try:
            original_size = await self.prober.measure(url)
        except ImgproxyCheckerError as e:
            logger.warning("Original size failed for {}: {}", url[:80], e.detail)
            return SizeResult(
                image_url=url,
                original_error=e.kind,
                original_error_detail=e.detail,
                fetched_at=fetched_at,
            )

        try:
            optimized_size = await self.requester.measure_optimized(url)
        except ImgproxyCheckerError as e:
            logger.warning("Optimized size failed for {}: {}", url[:80], e.detail)
            return SizeResult(
                image_url=url,
                original_size=original_size,
                optimized_error=e.kind,
                optimized_error_detail=e.detail,
                fetched_at=fetched_at,
            )

        result = SizeResult(
            image_url=url,
            original_size=original_size,
            optimized_size=optimized_size,
            fetched_at=fetched_at,
        )
        await self._store(item, result)
        return result

    async def _lookup(self, item: WorkItem) -> SizeResult | None:
        if self.cache is None or item.image_url.is_data:
            return None
        try:
            entry = await self.cache.get(item.page_url, item.image_url.url)
        except CacheError as e:
            logger.warning("Cache lookup failed, treating as miss: {}", e.detail)
            return None
        if entry is None or not self.freshness.is_fresh(entry.fetched_at, self.clock()):
            return None

        logger.debug("Cache hit for {}", item.image_url.url[:80])
        return SizeResult(
            image_url=entry.image_url,
            original_size=entry.original_size,
            optimized_size=entry.optimized_size,
            fetched_at=entry.fetched_at,
            from_cache=True,
        )

    async def _store(self, item: WorkItem, result: SizeResult) -> None:
        if self.cache is None or item.image_url.is_data:
            return
        entry = CacheEntry(
            page_url=item.page_url,
            image_url=result.image_url,
            original_size=result.original_size,
            optimized_size=result.optimized_size,
            fetched_at=result.fetched_at,
        )
        try:
            await self.cache.upsert(entry)
        except CacheError as e:
            logger.warning("Cache write failed for {}: {}", result.image_url[:80], e.detail)


class WorkerPool:
    """Runs work items through a fixed number of concurrent workers."""

    def __init__(
        self,
        process: Callable[[WorkItem], Awaitable[SizeResult]],
        workers: int = 5,
        clock: Clock = time.time,
    ):
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.process = process
        self.workers = workers
        self.clock = clock

    async def run(self, items: list[WorkItem]) -> list[SizeResult]:
        """
        Process every item and return exactly one result per item.

        Results are in arrival order, not submission order.
        """
        if not items:
            return []

        queue: asyncio.Queue[WorkItem | None] = asyncio.Queue()
        results: asyncio.Queue[SizeResult] = asyncio.Queue()
        worker_count = min(self.workers, len(items))

        for item in items:
            queue.put_nowait(item)
        # One sentinel per worker closes the queue
        for _ in range(worker_count):
            queue.put_nowait(None)

        tasks = [
            asyncio.create_task(self._worker(queue, results)) for _ in range(worker_count)
        ]
        try:
            collected = [await results.get() for _ in items]
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()

        logger.debug("Worker pool finished {} items with {} workers", len(collected), worker_count)
        return collected

    async def _worker(
        self,
        queue: asyncio.Queue[WorkItem | None],
        results: asyncio.Queue[SizeResult],
    ) -> None:
        while True:
            item = await queue.get()
            if item is None:
                return
            try:
                result = await self.process(item)
            except Exception as e:
                logger.exception("Unexpected error processing {}", item.image_url.url[:80])
                result = SizeResult(
                    image_url=item.image_url.url,
                    original_error=ErrorKind.FETCH_ERROR,
                    original_error_detail=f"{type(e).__name__}: {e}",
                    fetched_at=int(self.clock()),
                )
            await results.put(result)


def create_http_client(config: Settings) -> httpx.AsyncClient:
    """Create the HTTP client shared by extraction and probing."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.fetch_timeout),
        follow_redirects=True,
        max_redirects=config.max_redirects,
        headers={"User-Agent": config.user_agent},
    )


class PageAnalyzer:
    """Analyzes pages end to end. Use as an async context manager."""

    def __init__(
        self,
        config: Settings | None = None,
        cache: SizeCache | None = None,
        staging: StagingStore | None = None,
        renderer: PageRenderer | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Clock = time.time,
    ):
        """
        Initialize the analyzer.

        Args:
            config: Settings to use (defaults to the global settings)
            cache: Optional size cache
            staging: Staging store served by the /images endpoint
            renderer: Page renderer (created from config if omitted)
            client: HTTP client (created and owned if omitted)
            clock: Returns the current Unix time
        """
        self.config = config or default_settings
        self.cache = cache
        self.staging = staging if staging is not None else StagingStore()
        self.clock = clock
        self._client = client
        self._owns_client = client is None
        self._renderer = renderer

    async def __aenter__(self) -> PageAnalyzer:
        if self._client is None:
            self._client = create_http_client(self.config)
        if self._renderer is None:
            self._renderer = create_page_renderer(
                self.config.renderer,
                client=self._client,
                navigation_timeout=self.config.fetch_timeout,
            )

        prober = SizeProber(self._client)
        requester = OptimizationRequester(
            prober,
            self.staging,
            proxy_host=self.config.proxy_host,
            public_base_url=self.config.public_base_url,
            always_stage=self.config.always_stage,
        )
        self.extractor = ReferenceExtractor(
            self._renderer,
            self._client,
            lazy_load_timeout=self.config.lazy_load_timeout,
            scan_scripts=self.config.scan_scripts,
        )
        self.processor = ImageProcessor(
            prober,
            requester,
            cache=self.cache,
            freshness=FreshnessPolicy(timedelta(hours=self.config.cache_ttl_hours)),
            clock=self.clock,
        )
        self.pool = WorkerPool(self.processor.process, workers=self.config.workers, clock=self.clock)
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def analyze(self, page_url: str) -> Report:
        """
        Analyze a page and return its savings report.

        Raises:
            FetchError: If the page itself cannot be loaded
            ParseError: If the page markup cannot be parsed
        """
        logger.info("Analyzing {}", page_url)
        references = await self.extractor.extract(page_url)
        items = schedule_work_items(page_url, references, Deduplicator())
        results = await self.pool.run(items)

        report = Report.from_results(page_url, results)
        logger.info(
            "Analyzed {}: {} images, {} failed, {} bytes saved",
            page_url,
            len(report.per_image),
            len(report.failed),
            report.savings,
        )
        return report
