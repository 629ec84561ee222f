"""
Unit Tests — upload validation
═══════════════════════════════
  ✅ Magic-byte detection for every supported type
  ✅ Empty / oversized → rejected
  ✅ Unknown content → rejected regardless of declared type
  ✅ Declared type or extension disagreeing with content → rejected
  ✅ Filename sanitization → path traversal stripped
"""

from __future__ import annotations

import pytest

from lumio.core.exceptions import EmptyFileError, FileTooLargeError, UnsupportedFileTypeError
from lumio.services.uploads import sanitize_filename, sniff_mime_type, validate_upload

LIMIT = 1024


@pytest.mark.unit
class TestSniffMimeType:

    @pytest.mark.parametrize("data,expected", [
        (b"%PDF-1.7\n",                       "application/pdf"),
        (b"\xff\xd8\xff\xe0\x00\x10JFIF",     "image/jpeg"),
        (b"\x89PNG\r\n\x1a\n\x00",            "image/png"),
        (b"II*\x00\x08\x00",                  "image/tiff"),
        (b"MM\x00*\x00\x00",                  "image/tiff"),
        (b"BM6\x00\x00\x00",                  "image/bmp"),
        (b"RIFF\x24\x00\x00\x00WEBPVP8 ",     "image/webp"),
        (b"MZ\x90\x00",                       None),
        (b"PK\x03\x04",                       None),
    ])
    def test_detection(self, data, expected):
        assert sniff_mime_type(data) == expected


@pytest.mark.unit
class TestValidateUpload:

    def test_valid_png(self, png_bytes):
        upload = validate_upload(png_bytes, "image/png", "scan.png", LIMIT)
        assert upload.mime_type == "image/png"
        assert upload.safe_name == "scan.png"
        assert upload.size_bytes == len(png_bytes)

    def test_empty(self):
        with pytest.raises(EmptyFileError):
            validate_upload(b"", "image/png", "scan.png", LIMIT)

    def test_too_large(self, png_bytes):
        with pytest.raises(FileTooLargeError) as exc_info:
            validate_upload(png_bytes + b"\x00" * LIMIT, "image/png", "scan.png", LIMIT)
        assert exc_info.value.limit_bytes == LIMIT

    def test_unknown_content(self):
        with pytest.raises(UnsupportedFileTypeError):
            validate_upload(b"MZ\x90\x00" + b"\x00" * 16, "application/pdf", "doc.pdf", LIMIT)

    def test_declared_type_mismatch(self, png_bytes):
        with pytest.raises(UnsupportedFileTypeError):
            validate_upload(png_bytes, "application/pdf", "scan.png", LIMIT)

    def test_octet_stream_is_accepted(self, png_bytes):
        upload = validate_upload(png_bytes, "application/octet-stream", "scan.png", LIMIT)
        assert upload.mime_type == "image/png"

    def test_mime_alias_and_parameters(self, jpeg_bytes):
        upload = validate_upload(jpeg_bytes, "image/jpg; charset=binary", "photo.JPG", LIMIT)
        assert upload.mime_type == "image/jpeg"

    def test_extension_mismatch(self, png_bytes):
        with pytest.raises(UnsupportedFileTypeError):
            validate_upload(png_bytes, "image/png", "scan.pdf", LIMIT)

    def test_missing_filename(self, png_bytes):
        with pytest.raises(UnsupportedFileTypeError):
            validate_upload(png_bytes, "image/png", None, LIMIT)


@pytest.mark.unit
class TestSanitizeFilename:

    @pytest.mark.parametrize("raw,expected", [
        ("../../etc/passwd.pdf",         "passwd.pdf"),
        ("C:\\Users\\me\\scan.png",      "scan.png"),
        ("my report (final).pdf",        "my_report_final_.pdf"),
        ("résumé.pdf",                   "resume.pdf"),
        ("",                             "upload"),
        (None,                           "upload"),
    ])
    def test_sanitize(self, raw, expected):
        assert sanitize_filename(raw) == expected

    def test_long_names_keep_extension(self):
        name = sanitize_filename("a" * 300 + ".pdf")
        assert len(name) == 120
        assert name.endswith(".pdf")
