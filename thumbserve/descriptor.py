"""
ThumbnailDescriptor - Fixed output geometry and format for one pipeline.
"""

import posixpath
from dataclasses import dataclass

from .errors import CropError, UnsupportedFormatError


# Output extension -> Pillow format name
OUTPUT_FORMATS = {
    'jpg': 'JPEG',
    'jpeg': 'JPEG',
    'png': 'PNG',
}


def normalize_extension(extension: str) -> str:
    """Lowercase an extension and drop any leading dot."""
    return extension.lower().lstrip('.')


def pil_format(extension: str) -> str:
    """
    Map an output extension to the Pillow format used to encode it.

    Raises:
        UnsupportedFormatError: if the extension is not jpg, jpeg or png
    """
    try:
        return OUTPUT_FORMATS[normalize_extension(extension)]
    except KeyError:
        raise UnsupportedFormatError(
            f"extension [{extension}] not supported for thumbnails"
        ) from None


def clean_path(path: str) -> str:
    """
    Normalize a request or storage path into a relative path.

    The path is resolved as if rooted, so '..' segments can never climb
    above the root; the leading slash is then dropped.
    """
    cleaned = posixpath.normpath('/' + path.replace('\\', '/'))
    return cleaned.lstrip('/')


@dataclass(frozen=True)
class ThumbnailDescriptor:
    """
    Target width, height and output format shared by every request.

    Attributes:
        width: Target width in pixels
        height: Target height in pixels
        extension: Output extension, one of jpg, jpeg or png
    """
    width: int
    height: int
    extension: str

    def __post_init__(self):
        object.__setattr__(self, 'extension', normalize_extension(self.extension))
        pil_format(self.extension)
        if self.width <= 0 or self.height <= 0:
            raise CropError(
                f"invalid thumbnail size {self.width}x{self.height}"
            )

    @property
    def format(self) -> str:
        """Pillow format name for the output extension."""
        return OUTPUT_FORMATS[self.extension]

    @property
    def content_type(self) -> str:
        """Content-Type served for every thumbnail of this descriptor."""
        return f"image/{self.extension}"

    @property
    def size(self):
        return self.width, self.height

    def image_key(self, request_path: str) -> str:
        """
        Derive the image key from a request path.

        A trailing '.<extension>' is stripped so '/cat.jpg.png' and
        '/cat.jpg' both address the source image 'cat.jpg'.
        """
        suffix = f".{self.extension}"
        if request_path.endswith(suffix):
            request_path = request_path[:-len(suffix)]
        return clean_path(request_path)

    def thumbnail_name(self, key: str) -> str:
        """Relative name of the persisted thumbnail for a key."""
        return f"{clean_path(key)}.{self.extension}"
