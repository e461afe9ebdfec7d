"""
On-demand image thumbnail server.

A request path names a source image; the pipeline returns a thumbnail of a
fixed size and format, generating it on a miss and caching it either in a
persisted store (filesystem or S3) or in an in-memory cache group shared by
a pool of peer processes.
"""

__version__ = "1.0.0"

from .errors import (
    ThumbnailError,
    NotFoundError,
    DecodeError,
    CropError,
    UnsupportedFormatError,
    PersistError,
    PeerError,
    ComputeError,
)
from .descriptor import ThumbnailDescriptor
from .codec import ImageCodec
from .transform import transform
from .thumbnail_generator import ThumbnailGenerator
from .sources import LocalSource, S3Source
from .stores import FileStore, S3Store
from .group_cache import CacheGroup
from .peers import PeerPool
from .backends import Thumbnail, PersistentBackend, GroupBackend
from .pipeline import ThumbnailPipeline
from .config import ServerConfig
from .s3_config import S3Config
from .server import build_app

__all__ = [
    "ThumbnailError",
    "NotFoundError",
    "DecodeError",
    "CropError",
    "UnsupportedFormatError",
    "PersistError",
    "PeerError",
    "ComputeError",
    "ThumbnailDescriptor",
    "ImageCodec",
    "transform",
    "ThumbnailGenerator",
    "LocalSource",
    "S3Source",
    "FileStore",
    "S3Store",
    "CacheGroup",
    "PeerPool",
    "Thumbnail",
    "PersistentBackend",
    "GroupBackend",
    "ThumbnailPipeline",
    "ServerConfig",
    "S3Config",
    "build_app",
]
