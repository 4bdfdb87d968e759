"""
Data models for size probing.

Provides Pydantic models for units of work and their results.
"""

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ErrorKind
from ..extraction.resolver import ResolvedImageURL


class WorkItem(BaseModel):
    """One image of one page, submitted to the worker pool."""

    model_config = ConfigDict(frozen=True)

    page_url: str = Field(description="Page the image was found on")
    image_url: ResolvedImageURL = Field(description="Resolved image URL to measure")


class SizeResult(BaseModel):
    """Original and optimized byte sizes of a single image."""

    model_config = ConfigDict(frozen=True)

    image_url: str = Field(description="Image URL (or data URI) that was measured")
    original_size: int = Field(default=0, description="Original size in bytes")
    optimized_size: int = Field(default=0, description="Proxy-optimized size in bytes")
    original_error: ErrorKind | None = Field(default=None, description="Original probe failure")
    optimized_error: ErrorKind | None = Field(default=None, description="Optimized probe failure")
    original_error_detail: str | None = Field(default=None, description="Original failure cause")
    optimized_error_detail: str | None = Field(
        default=None, description="Optimized failure cause"
    )
    fetched_at: int = Field(description="Unix epoch seconds of the measurement")
    from_cache: bool = Field(default=False, description="Rehydrated from the size cache")

    @property
    def ok(self) -> bool:
        """True when both probes succeeded."""
        return self.original_error is None and self.optimized_error is None

    @property
    def savings(self) -> int:
        """Bytes saved by the optimized version (0 unless both probes succeeded)."""
        return self.original_size - self.optimized_size if self.ok else 0
