"""
Image resizing and compression with Pillow
"""

import io
import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from ..config import IMAGE_COMPRESSION_THRESHOLD

logger = logging.getLogger(__name__)

# Oversized uploads are shrunk to fit inside this box before any other processing
COMPRESSION_MAX_SIZE = (2400, 1800)
COMPRESSION_QUALITY = 80

CONTENT_TYPES = {"WEBP": "image/webp", "JPEG": "image/jpeg", "PNG": "image/png"}


class InvalidImageError(ValueError):
    """Uploaded bytes are not a readable image"""


@dataclass
class ProcessedImage:
    data: bytes
    width: int
    height: int
    format: str

    @property
    def content_type(self) -> str:
        return CONTENT_TYPES.get(self.format, "application/octet-stream")

    @property
    def extension(self) -> str:
        return "jpg" if self.format == "JPEG" else self.format.lower()


def open_image(data: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError("Uploaded file is not a valid image") from e
    # Honour camera orientation before resizing
    return ImageOps.exif_transpose(img)


def _encode(img: Image.Image, fmt: str, quality: int) -> ProcessedImage:
    if fmt == "JPEG" and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    elif fmt == "WEBP" and img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA" if "A" in img.getbands() else "RGB")

    buffer = io.BytesIO()
    img.save(buffer, format=fmt, quality=quality)
    return ProcessedImage(data=buffer.getvalue(), width=img.width, height=img.height, format=fmt)


def compress_image(data: bytes, threshold: int = IMAGE_COMPRESSION_THRESHOLD) -> bytes:
    """
    Downscale and re-encode images larger than the threshold.
    Smaller files are returned unchanged.
    """
    if len(data) <= threshold:
        return data

    img = open_image(data)
    img.thumbnail(COMPRESSION_MAX_SIZE, Image.Resampling.LANCZOS)
    compressed = _encode(img, "JPEG", COMPRESSION_QUALITY).data
    logger.info(
        f"🗜️ Compressed image from {len(data) / 1024 / 1024:.1f}MB to {len(compressed) / 1024 / 1024:.1f}MB"
    )
    return compressed


def fit_image(data: bytes, max_size: tuple, fmt: str = "WEBP", quality: int = 85) -> ProcessedImage:
    """Shrink to fit inside max_size keeping aspect ratio; never upscales"""
    img = open_image(data)
    img.thumbnail(max_size, Image.Resampling.LANCZOS)
    return _encode(img, fmt, quality)


def fill_image(data: bytes, size: tuple, fmt: str = "WEBP", quality: int = 85) -> ProcessedImage:
    """Crop from the centre and resize to exactly size"""
    img = open_image(data)
    img = ImageOps.fit(img, size, Image.Resampling.LANCZOS)
    return _encode(img, fmt, quality)

