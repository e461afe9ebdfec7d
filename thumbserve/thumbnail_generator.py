"""
ThumbnailGenerator - Renders source image bytes into thumbnail bytes.
"""

import logging
from typing import Optional

from .codec import ImageCodec
from .descriptor import ThumbnailDescriptor
from .transform import transform


class ThumbnailGenerator:
    """
    Decodes a source image, resizes and crops it to the descriptor's size,
    and encodes it in the descriptor's format.
    """

    def __init__(
        self,
        descriptor: ThumbnailDescriptor,
        codec: Optional[ImageCodec] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize thumbnail generator.

        Args:
            descriptor: Target width, height and output extension
            codec: Optional codec instance
            logger: Optional logger instance
        """
        self.descriptor = descriptor
        self.logger = logger or logging.getLogger(__name__)
        self.codec = codec or ImageCodec(logger=self.logger)

    @property
    def content_type(self) -> str:
        return self.descriptor.content_type

    def generate(self, image_data: bytes, name: str = '') -> bytes:
        """
        Generate a thumbnail from image data.

        Args:
            image_data: Original image as bytes
            name: Image key, used only for log messages

        Returns:
            Encoded thumbnail bytes

        Raises:
            DecodeError, CropError, UnsupportedFormatError
        """
        img, source_format = self.codec.decode(image_data)
        self.logger.debug(
            f"Decoded {name or 'image'} ({source_format} {img.size[0]}x{img.size[1]})"
        )
        thumb = self.resize(img)
        return self.codec.encode(thumb, self.descriptor.extension)

    def resize(self, img):
        """Resize and center-crop a decoded image to the descriptor's size."""
        return transform(img, self.descriptor.width, self.descriptor.height)

