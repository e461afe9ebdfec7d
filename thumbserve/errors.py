"""
Exceptions raised by the thumbnail pipeline.

Every failure that can happen while serving a thumbnail derives from
ThumbnailError so the HTTP adapter can map it to a status code in one place.
"""

from typing import Optional


class ThumbnailError(Exception):
    """Base class for all thumbnail pipeline failures."""
    pass


class NotFoundError(ThumbnailError):
    """Raised when a source image or a cached thumbnail does not exist."""
    pass


class DecodeError(ThumbnailError):
    """Raised when bytes cannot be decoded as a supported image."""
    pass


class CropError(ThumbnailError):
    """Raised when resize/crop geometry is invalid."""
    pass


class UnsupportedFormatError(ThumbnailError):
    """Raised when an output format is not one of jpg, jpeg or png."""
    pass


class PersistError(ThumbnailError):
    """Raised when a generated thumbnail cannot be written to its store."""
    pass


class PeerError(ThumbnailError):
    """Raised when a peer process cannot answer a cache fetch."""
    pass


class ComputeError(ThumbnailError):
    """
    Raised by a cache group when its loader fails at any stage.

    Attributes:
        key: The cache key being computed
        cause: The underlying error, if any
    """

    def __init__(self, key: str, cause: Optional[BaseException] = None):
        self.key = key
        self.cause = cause
        message = f"could not compute [{key}]"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)

    @property
    def not_found(self) -> bool:
        """True when the computation failed because the source is missing."""
        return isinstance(self.cause, NotFoundError)
