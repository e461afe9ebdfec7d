"""
ServerConfig - Settings read once at startup from THUMB_* environment
variables and CLI overrides.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .descriptor import OUTPUT_FORMATS, normalize_extension
from .group_cache import MEGABYTE


VARIANTS = ('file', 's3', 'memory')


def _split(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


def _int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


@dataclass
class ServerConfig:
    """
    Everything needed to build the thumbnail server.

    Attributes:
        width: Thumbnail width in pixels
        height: Thumbnail height in pixels
        extension: Output extension (jpg, jpeg or png)
        variant: 'file', 's3' (persisted) or 'memory' (cache group)
        source_root: Directory of original images
        thumbnail_root: Directory of persisted thumbnails (file variant)
        cache_bytes: Byte budget of the cache group (memory variant)
        cache_name: Cache group name, unique per process
        self_url: Base URL peers use to reach this process
        peers: Base URLs of every peer in the pool
        prefix: URL prefix the thumbnails are served under
        cache_control: Optional Cache-Control header for thumbnail responses
        host: Address to bind
        port: Port to bind
        server: Bottle server adapter name
        debug: Run Bottle in debug mode
        log_level: Logging level name
    """
    width: int = 300
    height: int = 250
    extension: str = 'png'
    variant: str = 'file'
    source_root: str = 'images'
    thumbnail_root: str = 'thumbnails'
    cache_bytes: int = 64 * MEGABYTE
    cache_name: str = 'thumbnails'
    self_url: Optional[str] = None
    peers: List[str] = field(default_factory=list)
    prefix: str = ''
    cache_control: Optional[str] = None
    host: str = '0.0.0.0'
    port: int = 8080
    server: str = 'wsgiref'
    debug: bool = False
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'ServerConfig':
        """Build a config from THUMB_* environment variables."""
        defaults = cls()
        return cls(
            width=_int('THUMB_WIDTH', defaults.width),
            height=_int('THUMB_HEIGHT', defaults.height),
            extension=os.getenv('THUMB_EXTENSION', defaults.extension),
            variant=os.getenv('THUMB_VARIANT', defaults.variant),
            source_root=os.getenv('THUMB_SOURCE_ROOT', defaults.source_root),
            thumbnail_root=os.getenv('THUMB_THUMBNAIL_ROOT', defaults.thumbnail_root),
            cache_bytes=_int('THUMB_CACHE_BYTES', defaults.cache_bytes),
            cache_name=os.getenv('THUMB_CACHE_NAME', defaults.cache_name),
            self_url=os.getenv('THUMB_SELF_URL') or None,
            peers=_split(os.getenv('THUMB_PEERS')),
            prefix=os.getenv('THUMB_PREFIX', defaults.prefix),
            cache_control=os.getenv('THUMB_CACHE_CONTROL') or None,
            host=os.getenv('THUMB_HOST', defaults.host),
            port=_int('THUMB_PORT', defaults.port),
            server=os.getenv('THUMB_SERVER', defaults.server),
            debug=os.getenv('THUMB_DEBUG', 'false').lower() in ('1', 'true', 'yes'),
            log_level=os.getenv('THUMB_LOG_LEVEL', defaults.log_level).upper(),
        )

    def validate(self) -> List[str]:
        """Return a list of configuration errors (empty when valid)."""
        errors = []
        if normalize_extension(self.extension) not in OUTPUT_FORMATS:
            errors.append(
                f"extension [{self.extension}] not supported for thumbnails "
                f"(use one of {', '.join(OUTPUT_FORMATS)})"
            )
        if self.width <= 0 or self.height <= 0:
            errors.append(f"invalid thumbnail size {self.width}x{self.height}")
        if self.variant not in VARIANTS:
            errors.append(f"unknown variant [{self.variant}] (use one of {', '.join(VARIANTS)})")
        if self.variant in ('file', 'memory') and not os.path.isdir(self.source_root):
            errors.append(f"source root does not exist: {self.source_root}")
        if self.variant == 'file' and not self.thumbnail_root:
            errors.append("thumbnail root is not set")
        if self.variant == 'memory':
            if self.cache_bytes <= 0:
                errors.append(f"cache size must be positive, got {self.cache_bytes}")
            if not self.cache_name:
                errors.append("cache name is not set")
            if self.peers and not self.self_url:
                errors.append("self URL is required when peers are configured")
        return errors

    def headers(self) -> Dict[str, str]:
        """Extra headers added to every thumbnail response."""
        if self.cache_control:
            return {'Cache-Control': self.cache_control}
        return {}
