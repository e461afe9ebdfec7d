"""
Resize and center-crop a raster to an exact thumbnail size.
"""

from typing import Tuple

from PIL import Image

from .errors import CropError


# Pillow has no Mitchell-Netravali filter; bicubic is its closest cubic kernel.
RESAMPLE = Image.Resampling.BICUBIC


def scaled_size(source: Tuple[int, int], width: int, height: int) -> Tuple[int, int]:
    """
    Compute the intermediate size before cropping.

    The image is scaled so its height equals the target height. When that
    leaves it narrower than the target width it is scaled by width instead,
    so the crop window always fits inside the scaled image.
    """
    src_w, src_h = source
    if src_w <= 0 or src_h <= 0:
        raise CropError(f"cannot crop empty image {src_w}x{src_h}")
    if width <= 0 or height <= 0:
        raise CropError(f"invalid crop size {width}x{height}")

    new_w = max(1, round(src_w * height / src_h))
    if new_w >= width:
        return new_w, height
    return width, max(height, round(src_h * width / src_w))


def crop_box(size: Tuple[int, int], width: int, height: int) -> Tuple[int, int, int, int]:
    """Centered crop box of width x height, clamped to the image bounds."""
    img_w, img_h = size
    left = max(0, (img_w - width) // 2)
    top = max(0, (img_h - height) // 2)
    right = min(img_w, left + width)
    bottom = min(img_h, top + height)
    if right - left <= 0 or bottom - top <= 0:
        raise CropError(f"crop {width}x{height} does not fit image {img_w}x{img_h}")
    return left, top, right, bottom


def transform(img: Image.Image, width: int, height: int) -> Image.Image:
    """
    Resize img to the target height and crop it to exactly width x height.

    Raises:
        CropError: if the source or target geometry is empty or negative
    """
    new_size = scaled_size(img.size, width, height)
    if new_size != img.size:
        img = img.resize(new_size, RESAMPLE)
    return img.crop(crop_box(img.size, width, height))
