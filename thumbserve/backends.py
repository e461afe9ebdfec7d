"""
Thumbnail backends - the two ways a pipeline finds or builds a thumbnail.

PersistentBackend keeps thumbnails in a store (files or S3) and regenerates
them on a miss. GroupBackend keeps them in an in-memory CacheGroup that
computes them on a miss.
"""

import io
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import BinaryIO, Optional

from .descriptor import ThumbnailDescriptor
from .errors import NotFoundError
from .group_cache import CacheGroup, Loader, SingleFlight
from .thumbnail_generator import ThumbnailGenerator


@dataclass
class Thumbnail:
    """
    A thumbnail ready to be served.

    Attributes:
        body: Open binary stream positioned at the start of the image
        content_type: Content-Type header value
        last_modified: Modification time as a POSIX timestamp
        content_length: Size of the body in bytes
    """
    body: BinaryIO
    content_type: str
    last_modified: float
    content_length: int

    @classmethod
    def from_bytes(cls, data: bytes, content_type: str, last_modified: Optional[float] = None) -> 'Thumbnail':
        return cls(
            body=io.BytesIO(data),
            content_type=content_type,
            last_modified=time.time() if last_modified is None else last_modified,
            content_length=len(data),
        )

    def read(self) -> bytes:
        """Read the whole body and close it."""
        try:
            return self.body.read()
        finally:
            self.close()

    def close(self) -> None:
        self.body.close()


def stream_length(body: BinaryIO) -> int:
    """Remaining length of a seekable stream."""
    position = body.tell()
    end = body.seek(0, io.SEEK_END)
    body.seek(position)
    return end - position


class ThumbnailBackend(ABC):
    """Finds or builds the thumbnail for an image key."""

    def __init__(self, generator: ThumbnailGenerator, logger: Optional[logging.Logger] = None):
        self.generator = generator
        self.logger = logger or logging.getLogger(__name__)

    @property
    def descriptor(self) -> ThumbnailDescriptor:
        return self.generator.descriptor

    @abstractmethod
    def lookup(self, key: str, request_path: str) -> Thumbnail:
        """
        Return the thumbnail for key.

        Args:
            key: Cleaned image key
            request_path: Raw request path the key was derived from
        """


class PersistentBackend(ThumbnailBackend):
    """
    Serves thumbnails from a store, generating and storing them on a miss.

    Concurrent misses for the same key share one generation.
    """

    def __init__(
        self,
        store,
        source,
        generator: ThumbnailGenerator,
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(generator, logger)
        self.store = store
        self.source = source
        self._flight = SingleFlight()

    def lookup(self, key: str, request_path: str) -> Thumbnail:
        try:
            body, mtime = self.store.get(key)
        except NotFoundError:
            self.logger.debug(f"Thumbnail miss: {key}")
        else:
            self.logger.debug(f"Serving previously scaled thumbnail: {key}")
            return Thumbnail(
                body=body,
                content_type=self.descriptor.content_type,
                last_modified=mtime,
                content_length=stream_length(body),
            )

        data = self._flight.do(key, lambda: self.render(key))
        return Thumbnail.from_bytes(data, self.descriptor.content_type)

    def render(self, key: str) -> bytes:
        """
        Generate the thumbnail for key from its source and store it.

        Raises:
            NotFoundError: if the source image does not exist
            DecodeError, CropError, PersistError
        """
        image_data = self.source.read(key)
        thumb_data = self.generator.generate(image_data, key)
        self.store.put(key, thumb_data)
        self.logger.info(f"Generated: {key} ({len(thumb_data)} bytes)")
        return thumb_data


def make_loader(source, generator: ThumbnailGenerator, logger: Optional[logging.Logger] = None) -> Loader:
    """
    Build a CacheGroup loader that renders thumbnails from a source.

    Loader keys are raw request paths; the image key is derived from them.
    """
    logger = logger or logging.getLogger(__name__)

    def load(request_path: str) -> bytes:
        key = generator.descriptor.image_key(request_path)
        thumb_data = generator.generate(source.read(key), key)
        logger.info(f"Generated: {key} ({len(thumb_data)} bytes)")
        return thumb_data

    return load


class GroupBackend(ThumbnailBackend):
    """
    Serves thumbnails from a CacheGroup addressed by the raw request path.

    There is no stable modification time, so each response is stamped with
    the current time.
    """

    def __init__(
        self,
        group: CacheGroup,
        generator: ThumbnailGenerator,
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(generator, logger)
        self.group = group

    def lookup(self, key: str, request_path: str) -> Thumbnail:
        data = self.group.get(request_path)
        return Thumbnail.from_bytes(data, self.descriptor.content_type)
