"""
ThumbnailPipeline - Resolves a request path to a servable thumbnail.
"""

import logging
from typing import Optional

from .backends import GroupBackend, PersistentBackend, Thumbnail, ThumbnailBackend, make_loader
from .descriptor import ThumbnailDescriptor
from .group_cache import CacheGroup
from .peers import PeerPool
from .sources import LocalSource
from .stores import FileStore
from .thumbnail_generator import ThumbnailGenerator


class ThumbnailPipeline:
    """
    Derives the image key for a request and hands it to a backend.

    One pipeline serves one descriptor: every response it produces carries
    Content-Type 'image/<extension>'.
    """

    def __init__(self, backend: ThumbnailBackend, logger: Optional[logging.Logger] = None):
        self.backend = backend
        self.logger = logger or logging.getLogger(__name__)

    @property
    def descriptor(self) -> ThumbnailDescriptor:
        return self.backend.descriptor

    @property
    def content_type(self) -> str:
        return self.descriptor.content_type

    def image_key(self, request_path: str) -> str:
        return self.descriptor.image_key(request_path)

    def resolve(self, request_path: str) -> Thumbnail:
        """
        Find or build the thumbnail for a request path.

        Raises:
            NotFoundError: if the source image does not exist
            ComputeError: if a cache group could not compute the thumbnail
            DecodeError, CropError, PersistError
        """
        key = self.image_key(request_path)
        return self.backend.lookup(key, request_path)

    @classmethod
    def with_file_cache(
        cls,
        descriptor: ThumbnailDescriptor,
        source_root: str,
        thumbnail_root: str,
        logger: Optional[logging.Logger] = None
    ) -> 'ThumbnailPipeline':
        """Pipeline that persists thumbnails under thumbnail_root."""
        generator = ThumbnailGenerator(descriptor, logger=logger)
        backend = PersistentBackend(
            store=FileStore(thumbnail_root, descriptor, codec=generator.codec, logger=logger),
            source=LocalSource(source_root, logger=logger),
            generator=generator,
            logger=logger,
        )
        return cls(backend, logger)

    @classmethod
    def with_cache_group(
        cls,
        descriptor: ThumbnailDescriptor,
        source_root: str,
        name: str,
        max_bytes: int,
        peers: Optional[PeerPool] = None,
        logger: Optional[logging.Logger] = None
    ) -> 'ThumbnailPipeline':
        """Pipeline that keeps thumbnails in a named in-memory cache group."""
        generator = ThumbnailGenerator(descriptor, logger=logger)
        loader = make_loader(LocalSource(source_root, logger=logger), generator, logger)
        group = CacheGroup(name, max_bytes, loader, peers=peers, logger=logger)
        return cls(GroupBackend(group, generator, logger), logger)
