"""
ImageCodec - Decodes source images and encodes thumbnails using Pillow.
"""

import io
import logging
from typing import BinaryIO, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .descriptor import pil_format
from .errors import DecodeError, UnsupportedFormatError


class ImageCodec:
    """
    Thin adapter over Pillow's decoders and encoders.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def decode(self, data: bytes) -> Tuple[Image.Image, str]:
        """
        Decode image bytes into a fully loaded raster.

        Args:
            data: Encoded image bytes (gif, jpeg, png, ...)

        Returns:
            Tuple of (image, detected_format) where the format is lowercase,
            e.g. 'jpeg'

        Raises:
            DecodeError: if the bytes are not a recognized image
        """
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
            raise DecodeError(f"could not decode image: {e}") from e

        detected = (img.format or '').lower()
        if img.mode == 'P' or img.mode not in ('RGB', 'RGBA', 'L', 'LA'):
            # Palette and exotic modes are resampled poorly
            img = img.convert('RGBA' if self._has_alpha(img) else 'RGB')
        return img, detected

    def encode(self, img: Image.Image, target_format: str) -> bytes:
        """
        Encode a raster as jpg, jpeg or png.

        JPEG uses the encoder's default quality and is flattened onto white
        when the raster has transparency. PNG is lossless.

        Raises:
            UnsupportedFormatError: if target_format is not supported
        """
        output_format = pil_format(target_format)

        output = io.BytesIO()
        if output_format == 'JPEG':
            self._flatten(img).save(output, format='JPEG')
        elif output_format == 'PNG':
            img.save(output, format='PNG')
        else:
            raise UnsupportedFormatError(
                f"extension [{target_format}] not supported for thumbnails"
            )
        return output.getvalue()

    def decoded_format(self, fileobj: BinaryIO) -> Optional[str]:
        """
        Fully decode an encoded image and return its lowercase format.

        Returns None if the data is not an image or does not decode to the
        end (truncated or corrupt pixel data). The file position is restored
        afterwards.
        """
        position = fileobj.tell()
        try:
            with Image.open(fileobj) as img:
                img.load()
                return (img.format or '').lower() or None
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
            return None
        finally:
            fileobj.seek(position)

    @staticmethod
    def _has_alpha(img: Image.Image) -> bool:
        return img.mode in ('RGBA', 'LA', 'PA') or 'transparency' in img.info

    def _flatten(self, img: Image.Image) -> Image.Image:
        """Convert image to RGB, compositing any alpha onto white."""
        if img.mode in ('RGBA', 'LA'):
            background = Image.new('RGB', img.size, (255, 255, 255))
            if img.mode == 'LA':
                img = img.convert('RGBA')
            background.paste(img, mask=img.split()[-1])
            return background
        elif img.mode != 'RGB':
            return img.convert('RGB')
        return img
