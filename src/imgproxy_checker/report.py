"""
Savings report and loading-time estimates.

Aggregates per-image size results into totals and estimates how long the
page's images take to download on typical connections.
"""

from collections.abc import Iterator

from pydantic import BaseModel, Field

from .probing.base import SizeResult

# Connection class -> bandwidth in kilobits per second
CONNECTION_CLASSES: dict[str, float] = {
    "2G": 35.0,
    "3G": 200.0,
    "4G": 1000.0,
    "Wi-Fi": 5000.0,
}


class LoadingTime(BaseModel):
    """Estimated download time of a page's images on one connection class."""

    original: float = Field(description="Seconds for the original images")
    optimized: float = Field(description="Seconds for the optimized images")


def estimate_loading_times(
    total_original: int,
    total_optimized: int,
    connection_classes: dict[str, float] | None = None,
) -> dict[str, LoadingTime]:
    """
    Estimate download times for each connection class.

    ``seconds = bytes * 8 / (kbps * 1000)``

    Args:
        total_original: Total original bytes
        total_optimized: Total optimized bytes
        connection_classes: Optional override of the class -> kbps table

    Returns:
        Mapping from connection class to loading time, in table order
    """
    classes = connection_classes or CONNECTION_CLASSES
    return {
        name: LoadingTime(
            original=total_original * 8 / (kbps * 1000),
            optimized=total_optimized * 8 / (kbps * 1000),
        )
        for name, kbps in classes.items()
    }


class Report(BaseModel):
    """Aggregate of all size results for one page."""

    page_url: str = Field(description="Page that was analyzed")
    per_image: list[SizeResult] = Field(default_factory=list, description="Results in arrival order")
    total_original: int = Field(default=0, description="Original bytes over successful images")
    total_optimized: int = Field(default=0, description="Optimized bytes over successful images")
    loading_times: dict[str, LoadingTime] = Field(default_factory=dict)

    @classmethod
    def from_results(cls, page_url: str, results: list[SizeResult]) -> "Report":
        """Build a report; totals only count images where both probes succeeded."""
        succeeded = [r for r in results if r.ok]
        total_original = sum(r.original_size for r in succeeded)
        total_optimized = sum(r.optimized_size for r in succeeded)
        return cls(
            page_url=page_url,
            per_image=list(results),
            total_original=total_original,
            total_optimized=total_optimized,
            loading_times=estimate_loading_times(total_original, total_optimized),
        )

    @property
    def failed(self) -> list[SizeResult]:
        """Results with at least one failed probe."""
        return [r for r in self.per_image if not r.ok]

    @property
    def savings(self) -> int:
        """Bytes saved across successful images."""
        return self.total_original - self.total_optimized

    @property
    def savings_ratio(self) -> float:
        """Fraction of original bytes saved (0.0 when nothing was measured)."""
        if not self.total_original:
            return 0.0
        return self.savings / self.total_original


def format_size(size: int) -> str:
    """Format a byte count in megabytes with two decimals."""
    return f"{size / 1024 / 1024:.2f} MB"


def describe_failure(result: SizeResult) -> str:
    """One-line description of why a result failed."""
    if result.original_error is not None:
        return f"original size: {result.original_error.value}: {result.original_error_detail}"
    return f"optimized size: {result.optimized_error.value}: {result.optimized_error_detail}"


def render_report_lines(report: Report, elapsed: float | None = None) -> Iterator[str]:
    """
    Render a report as plain-text lines (each ending in a newline).

    Order: per-image lines, totals, loading times, footer.

    Args:
        report: Report to render
        elapsed: Processing time in seconds, shown in the footer if given
    """
    for result in report.per_image:
        if result.ok:
            yield (
                f"Image URL: {result.image_url}, "
                f"Original Size: {format_size(result.original_size)}, "
                f"Optimized Size: {format_size(result.optimized_size)}\n"
            )
        else:
            yield f"Image URL: {result.image_url}, Error: {describe_failure(result)}\n"

    yield "\n"
    yield f"Total image size: {format_size(report.total_original)}\n"
    yield f"Total optimized image size: {format_size(report.total_optimized)}\n"
    yield f"Size difference: {format_size(report.savings)} ({report.savings_ratio:.1%})\n"
    if report.failed:
        yield f"Images failed: {len(report.failed)} of {len(report.per_image)}\n"

    yield "\nLoading times for different connection speeds (Original / Optimized):\n"
    for name, times in report.loading_times.items():
        yield f"{name}: {times.original:.2f} seconds / {times.optimized:.2f} seconds\n"

    yield f"\nOriginal URL: {report.page_url}\n"
    if elapsed is not None:
        yield f"Processing time: {elapsed:.2f}s\n"


def render_report(report: Report, elapsed: float | None = None) -> str:
    """Render a report as a single string."""
    return "".join(render_report_lines(report, elapsed))
