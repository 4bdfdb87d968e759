"""
Error taxonomy for the image size pipeline.

Each exception carries an ``ErrorKind`` so that per-image failures can be
recorded on a ``SizeResult`` instead of aborting the run. Upstream causes are
chained (``raise ... from exc``) and kept for diagnostics.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Category of a failure, as recorded on results and shown in reports."""

    FETCH_ERROR = "FetchError"
    REDIRECT_LOOP_ERROR = "RedirectLoopError"
    DECODE_ERROR = "DecodeError"
    PARSE_ERROR = "ParseError"
    CACHE_ERROR = "CacheError"
    STAGING_ERROR = "StagingError"


class ImgproxyCheckerError(Exception):
    """Base class for all pipeline errors."""

    kind: ErrorKind = ErrorKind.FETCH_ERROR

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url

    @property
    def detail(self) -> str:
        """Message including the upstream cause, if any."""
        cause = self.__cause__
        if cause is not None and str(cause) and str(cause) not in str(self):
            return f"{self} ({type(cause).__name__}: {cause})"
        return str(self)


class FetchError(ImgproxyCheckerError):
    """Network or transport failure, or a non-success status."""

    kind = ErrorKind.FETCH_ERROR


class RedirectLoopError(FetchError):
    """Redirect cap exceeded."""

    kind = ErrorKind.REDIRECT_LOOP_ERROR


class DecodeError(ImgproxyCheckerError):
    """Malformed ``data:`` URI payload."""

    kind = ErrorKind.DECODE_ERROR


class ParseError(ImgproxyCheckerError):
    """Malformed page, style or script content."""

    kind = ErrorKind.PARSE_ERROR


class CacheError(ImgproxyCheckerError):
    """Size cache read or write failure."""

    kind = ErrorKind.CACHE_ERROR


class StagingError(ImgproxyCheckerError):
    """Failed to create or serve a temporary public copy of an image."""

    kind = ErrorKind.STAGING_ERROR
