"""
Persisted thumbnail stores.

A store owns the thumbnails it has written. The pipeline only calls
get(key) and put(key, data); a stored thumbnail that does not decode to the
configured output format is reported as missing so it gets regenerated.
"""

import io
import logging
import os
import tempfile
from typing import BinaryIO, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from .codec import ImageCodec
from .descriptor import ThumbnailDescriptor, clean_path
from .errors import NotFoundError, PersistError
from .s3_client import S3Client, is_not_found


def validate_thumbnail(
    codec: ImageCodec,
    descriptor: ThumbnailDescriptor,
    body: BinaryIO,
    key: str,
    logger: logging.Logger
) -> None:
    """
    Reject a stored thumbnail unless it fully decodes in the output format.

    Truncated or corrupt files fail the decode and are reported as missing,
    the same as thumbnails left behind in another format.

    Raises:
        NotFoundError: if the thumbnail must be regenerated
    """
    detected = codec.decoded_format(body)
    if not detected or detected.upper() != descriptor.format:
        logger.info(
            f"Stale thumbnail for [{key}]: found {detected or 'undecodable data'}, "
            f"want {descriptor.extension}"
        )
        raise NotFoundError(f"thumbnail for [{key}] is not a valid {descriptor.extension}")


class FileStore:
    """
    Thumbnails stored as files at '<root>/<key>.<ext>', mirroring the source
    tree.
    """

    def __init__(
        self,
        root: str,
        descriptor: ThumbnailDescriptor,
        codec: Optional[ImageCodec] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.root = root
        self.descriptor = descriptor
        self.logger = logger or logging.getLogger(__name__)
        self.codec = codec or ImageCodec(logger=self.logger)

    def path(self, key: str) -> str:
        """Filesystem path of the thumbnail for a key."""
        name = self.descriptor.thumbnail_name(key)
        return os.path.join(self.root, *name.split('/'))

    def get(self, key: str) -> Tuple[BinaryIO, float]:
        """
        Open the stored thumbnail for a key.

        Returns:
            Tuple of (open binary file, modification timestamp). The caller
            owns the file and must close it.

        Raises:
            NotFoundError: if there is no thumbnail, or it does not decode
                as the configured format
        """
        path = self.path(key)
        try:
            f = open(path, 'rb')
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as e:
            raise NotFoundError(f"no thumbnail for [{key}]") from e

        try:
            mtime = os.fstat(f.fileno()).st_mtime
            validate_thumbnail(self.codec, self.descriptor, f, key, self.logger)
        except Exception:
            f.close()
            raise
        return f, mtime

    def put(self, key: str, data: bytes) -> None:
        """
        Write a thumbnail, creating missing parent directories.

        The data is written to a temporary file beside the target and renamed
        over it, so readers never see a partial thumbnail.

        Raises:
            PersistError: on any I/O failure
        """
        path = self.path(key)
        dirname = os.path.dirname(path)
        tmp_path = None
        try:
            os.makedirs(dirname, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=dirname, prefix='.tmp-', suffix=f".{self.descriptor.extension}", delete=False
            ) as tmp:
                tmp_path = tmp.name
                tmp.write(data)
            os.replace(tmp_path, path)
            tmp_path = None
        except OSError as e:
            raise PersistError(f"could not cache thumbnail [{key}]: {e}") from e
        finally:
            if tmp_path is not None:
                self._remove(tmp_path)

    def _remove(self, tmp_path: str) -> None:
        try:
            os.remove(tmp_path)
        except OSError as e:
            self.logger.warning(f"Could not delete {tmp_path}: {e}")


class S3Store:
    """
    Thumbnails stored as objects at '<prefix>/<thumbnails>/<key>.<ext>'.
    """

    def __init__(
        self,
        s3_client: S3Client,
        descriptor: ThumbnailDescriptor,
        thumbnails: str = 'thumbnails',
        codec: Optional[ImageCodec] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.s3 = s3_client
        self.descriptor = descriptor
        self.thumbnails = thumbnails.strip('/')
        self.logger = logger or logging.getLogger(__name__)
        self.codec = codec or ImageCodec(logger=self.logger)

    def object_key(self, key: str) -> str:
        return self.s3.config.key(
            f"{self.thumbnails}/{self.descriptor.thumbnail_name(clean_path(key))}"
        )

    def get(self, key: str) -> Tuple[BinaryIO, float]:
        object_key = self.object_key(key)
        try:
            metadata = self.s3.get_object_metadata(object_key)
            if metadata is None:
                raise NotFoundError(f"no thumbnail for [{key}]")
            body = io.BytesIO(self.s3.download_object(object_key))
        except ClientError as e:
            if is_not_found(e):
                raise NotFoundError(f"no thumbnail for [{key}]") from e
            raise

        validate_thumbnail(self.codec, self.descriptor, body, key, self.logger)
        return body, metadata['last_modified'].timestamp()

    def put(self, key: str, data: bytes) -> None:
        try:
            self.s3.upload_object(self.object_key(key), data, self.descriptor.content_type)
        except (ClientError, BotoCoreError) as e:
            raise PersistError(f"could not cache thumbnail [{key}]: {e}") from e
