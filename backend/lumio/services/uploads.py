"""
Upload validation — runs before anything is written or enqueued.

Checks, in order:
  1. Non-empty, size ≤ limit
  2. Magic bytes identify one of the supported types
  3. Declared MIME type agrees with the detected type
  4. File extension agrees with the detected type

The client-supplied Content-Type is never trusted on its own.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from pathlib import PurePosixPath, PureWindowsPath

from lumio.core.exceptions import (
    EmptyFileError,
    FileTooLargeError,
    UnsupportedFileTypeError,
)

logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES: dict[str, tuple[str, ...]] = {
    "application/pdf": (".pdf",),
    "image/jpeg":      (".jpg", ".jpeg"),
    "image/png":       (".png",),
    "image/tiff":      (".tif", ".tiff"),
    "image/bmp":       (".bmp",),
    "image/webp":      (".webp",),
}

MIME_ALIASES = {
    "image/jpg":   "image/jpeg",
    "image/pjpeg": "image/jpeg",
    "image/x-ms-bmp": "image/bmp",
}

MAX_FILENAME_LENGTH = 120

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class ValidatedUpload:
    mime_type:  str
    safe_name:  str
    size_bytes: int


def sniff_mime_type(data: bytes) -> str | None:
    """Detect the file type from its leading bytes."""
    if data.startswith(b"%PDF"):
        return "application/pdf"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data[:4] in (b"II*\x00", b"MM\x00*"):
        return "image/tiff"
    if data.startswith(b"BM"):
        return "image/bmp"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def normalize_mime_type(value: str | None) -> str:
    mime = (value or "").split(";", 1)[0].strip().lower()
    return MIME_ALIASES.get(mime, mime)


def sanitize_filename(filename: str | None) -> str:
    """Strip directories, replace unsafe characters, cap the length."""
    name = unicodedata.normalize("NFKD", filename or "").encode("ascii", "ignore").decode("ascii")
    name = PureWindowsPath(PurePosixPath(name).name).name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    if not name:
        return "upload"
    if len(name) > MAX_FILENAME_LENGTH:
        stem, dot, ext = name.rpartition(".")
        if dot and len(ext) <= 10:
            name = stem[: MAX_FILENAME_LENGTH - len(ext) - 1] + "." + ext
        else:
            name = name[:MAX_FILENAME_LENGTH]
    return name


def validate_upload(
    data:          bytes,
    declared_mime: str | None,
    filename:      str | None,
    max_bytes:     int,
) -> ValidatedUpload:
    size = len(data)
    if size == 0:
        raise EmptyFileError("Uploaded file is empty.")
    if size > max_bytes:
        raise FileTooLargeError(size, max_bytes)

    detected = sniff_mime_type(data)
    if detected is None:
        raise UnsupportedFileTypeError(
            "Unsupported file type. Allowed: PDF, JPEG, PNG, TIFF, BMP, WEBP."
        )

    declared = normalize_mime_type(declared_mime)
    if declared and declared != "application/octet-stream" and declared != detected:
        raise UnsupportedFileTypeError(
            f"Declared type {declared!r} does not match file content ({detected})."
        )

    safe_name = sanitize_filename(filename)
    extension = PurePosixPath(safe_name).suffix.lower()
    if extension not in SUPPORTED_MIME_TYPES[detected]:
        raise UnsupportedFileTypeError(
            f"File extension {extension or '(none)'!r} does not match file content ({detected})."
        )

    logger.debug("Upload validated | name=%s mime=%s bytes=%d", safe_name, detected, size)
    return ValidatedUpload(mime_type=detected, safe_name=safe_name, size_bytes=size)
