"""
Staging store for temporarily public copies of images.

The optimization proxy can only fetch public URLs, so originals are held here
and served from the ``/images/<key>`` endpoint for the duration of a probe.
"""

import secrets
import threading

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field


class StagedImage(BaseModel):
    """Bytes of a staged original image."""

    model_config = ConfigDict(frozen=True)

    content: bytes = Field(description="Original image bytes")
    content_type: str = Field(description="MIME type reported by the origin")


class StagingStore:
    """Keyed, lock-guarded map of staged images."""

    def __init__(self):
        self._images: dict[str, StagedImage] = {}
        self._lock = threading.Lock()

    def stage(self, content: bytes, content_type: str, suffix: str = "") -> str:
        """
        Store image bytes under a new random key.

        Args:
            content: Image bytes
            content_type: MIME type to serve the bytes with
            suffix: Optional file extension appended to the key (e.g. ".png")

        Returns:
            The content key
        """
        key = f"image-{secrets.token_hex(8)}{suffix}"
        with self._lock:
            self._images[key] = StagedImage(content=content, content_type=content_type)
        logger.debug("Staged {} bytes as {}", len(content), key)
        return key

    def get(self, key: str) -> StagedImage | None:
        """Return a staged image, or None for unknown keys."""
        with self._lock:
            return self._images.get(key)

    def release(self, key: str) -> None:
        """Remove a staged image. Unknown keys are ignored."""
        with self._lock:
            removed = self._images.pop(key, None)
        if removed is not None:
            logger.debug("Released staged image {}", key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._images)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._images
