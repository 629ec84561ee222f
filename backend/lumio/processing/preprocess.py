"""
Deterministic Pillow preprocessing ahead of local OCR.

  preprocess_image           fit in 2000x2000, grayscale, autocontrast, sharpen
  preprocess_image_advanced  same plus a contrast boost and binarization, for
                             faint or noisy scans

Both return PNG bytes. A decode failure in the standard variant returns the
input untouched so Tesseract still gets a chance at it.
"""

from __future__ import annotations

import io
import logging

from PIL import Image, ImageEnhance, ImageFilter, ImageOps

logger = logging.getLogger(__name__)

MAX_DIMENSION      = 2000
CONTRAST_FACTOR    = 1.2
BINARIZE_THRESHOLD = 128

# Formats the vision model accepts inline without conversion
VISION_SAFE_MIME_TYPES = frozenset({"image/png", "image/jpeg", "image/webp"})


def _encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def _normalized(image_bytes: bytes) -> Image.Image:
    with Image.open(io.BytesIO(image_bytes)) as img:
        img.load()
        working = img.copy()
    working.thumbnail((MAX_DIMENSION, MAX_DIMENSION))   # never enlarges
    gray = ImageOps.grayscale(working)
    return ImageOps.autocontrast(gray)


def preprocess_image(image_bytes: bytes) -> bytes:
    try:
        image = _normalized(image_bytes).filter(ImageFilter.SHARPEN)
        return _encode_png(image)
    except Exception as exc:
        logger.warning("Image preprocessing failed, using original | error=%s", exc)
        return image_bytes


def preprocess_image_advanced(image_bytes: bytes) -> bytes:
    try:
        image = _normalized(image_bytes)
        image = ImageEnhance.Contrast(image).enhance(CONTRAST_FACTOR)
        image = image.filter(ImageFilter.SHARPEN)
        image = image.point(lambda p: 255 if p >= BINARIZE_THRESHOLD else 0)
        return _encode_png(image)
    except Exception as exc:
        logger.warning("Advanced preprocessing failed | error=%s", exc)
        return preprocess_image(image_bytes)


def to_png(image_bytes: bytes) -> bytes:
    """Re-encode any Pillow-readable image (TIFF, BMP, ...) as PNG."""
    with Image.open(io.BytesIO(image_bytes)) as img:
        img.load()
        if img.mode not in ("RGB", "RGBA", "L"):
            img = img.convert("RGB")
        return _encode_png(img)
