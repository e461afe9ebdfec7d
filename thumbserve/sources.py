"""
Image sources - where original images are read from.
"""

import logging
import os
from typing import Iterator, Optional

from botocore.exceptions import ClientError

from .descriptor import clean_path
from .errors import NotFoundError
from .s3_client import S3Client, is_not_found


IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.gif', '.tif', '.tiff', '.bmp', '.webp'}


class LocalSource:
    """
    Reads original images from a directory tree.
    """

    def __init__(self, root: str, logger: Optional[logging.Logger] = None):
        self.root = root
        self.logger = logger or logging.getLogger(__name__)

    def path(self, key: str) -> str:
        """Filesystem path of the source image for a key."""
        return os.path.join(self.root, *clean_path(key).split('/'))

    def read(self, key: str) -> bytes:
        """
        Read the source image for a key.

        Raises:
            NotFoundError: if no regular file exists for the key
        """
        path = self.path(key)
        if not clean_path(key) or not os.path.isfile(path):
            raise NotFoundError(f"Missing original: {key}")
        try:
            with open(path, 'rb') as f:
                return f.read()
        except FileNotFoundError as e:
            raise NotFoundError(f"Missing original: {key}") from e

    def iter_keys(self) -> Iterator[str]:
        """Yield the key of every image file below the root, sorted."""
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames.sort()
            for filename in sorted(filenames):
                if os.path.splitext(filename)[1].lower() not in IMAGE_EXTENSIONS:
                    continue
                rel = os.path.relpath(os.path.join(dirpath, filename), self.root)
                yield rel.replace(os.sep, '/')


class S3Source:
    """
    Reads original images from an S3 bucket under '<prefix>/<originals>'.
    """

    def __init__(
        self,
        s3_client: S3Client,
        originals: str = 'originals',
        logger: Optional[logging.Logger] = None
    ):
        self.s3 = s3_client
        self.originals = originals.strip('/')
        self.logger = logger or logging.getLogger(__name__)

    def object_key(self, key: str) -> str:
        return self.s3.config.key(f"{self.originals}/{clean_path(key)}")

    def read(self, key: str) -> bytes:
        if not clean_path(key):
            raise NotFoundError(f"Missing original: {key}")
        try:
            return self.s3.download_object(self.object_key(key))
        except ClientError as e:
            if is_not_found(e):
                raise NotFoundError(f"Missing object: {self.object_key(key)}") from e
            raise

    def iter_keys(self) -> Iterator[str]:
        prefix = self.s3.config.key(self.originals) + '/'
        for object_key in self.s3.list_keys(prefix):
            if os.path.splitext(object_key)[1].lower() in IMAGE_EXTENSIONS:
                yield object_key[len(prefix):]
