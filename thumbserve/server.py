"""
Builds the Bottle application for a ServerConfig.

    app = build_app(ServerConfig.from_env())

The returned app is a WSGI callable, so it can be run with bottle.run or
handed to any WSGI server.
"""

import logging
from typing import Optional

from bottle import Bottle

from .backends import GroupBackend, PersistentBackend
from .config import ServerConfig
from .descriptor import ThumbnailDescriptor
from .peers import PeerPool
from .pipeline import ThumbnailPipeline
from .s3_client import S3Client
from .s3_config import S3Config
from .sources import S3Source
from .stores import S3Store
from .thumbnail_generator import ThumbnailGenerator
from .web import mount_peers, mount_stats, mount_thumbnails


def build_pipeline(
    config: ServerConfig,
    peers: Optional[PeerPool] = None,
    s3_config: Optional[S3Config] = None,
    logger: Optional[logging.Logger] = None
) -> ThumbnailPipeline:
    """
    Build the pipeline for the configured variant.

    Raises:
        UnsupportedFormatError, CropError: if the descriptor is invalid
    """
    descriptor = ThumbnailDescriptor(config.width, config.height, config.extension)

    if config.variant == 'memory':
        return ThumbnailPipeline.with_cache_group(
            descriptor,
            config.source_root,
            name=config.cache_name,
            max_bytes=config.cache_bytes,
            peers=peers,
            logger=logger,
        )

    if config.variant == 's3':
        s3 = S3Client(s3_config or S3Config.from_env(), logger)
        generator = ThumbnailGenerator(descriptor, logger=logger)
        backend = PersistentBackend(
            store=S3Store(s3, descriptor, codec=generator.codec, logger=logger),
            source=S3Source(s3, logger=logger),
            generator=generator,
            logger=logger,
        )
        return ThumbnailPipeline(backend, logger)

    return ThumbnailPipeline.with_file_cache(
        descriptor,
        config.source_root,
        config.thumbnail_root,
        logger=logger,
    )


def build_peers(config: ServerConfig, logger: Optional[logging.Logger] = None) -> Optional[PeerPool]:
    """Peer pool for the memory variant, or None when running alone."""
    if config.variant != 'memory' or not config.peers:
        return None
    return PeerPool(config.self_url, config.peers, logger=logger)


def build_app(
    config: ServerConfig,
    s3_config: Optional[S3Config] = None,
    logger: Optional[logging.Logger] = None
) -> Bottle:
    """Create the Bottle app serving thumbnails for config."""
    logger = logger or logging.getLogger(__name__)
    app = Bottle()

    peers = build_peers(config, logger)
    pipeline = build_pipeline(config, peers=peers, s3_config=s3_config, logger=logger)

    # Peer routes must be added before the catch-all thumbnail route
    if peers is not None:
        mount_peers(app, peers, logger)
    if isinstance(pipeline.backend, GroupBackend):
        mount_stats(app, [pipeline.backend.group])
    mount_thumbnails(app, pipeline, prefix=config.prefix, headers=config.headers(), logger=logger)

    logger.info(
        f"Serving {config.width}x{config.height} {pipeline.descriptor.extension} thumbnails "
        f"({config.variant}) from {config.source_root}"
    )
    return app
