from lumio.services.jobs import JobService
from lumio.services.uploads import ValidatedUpload, sanitize_filename, sniff_mime_type, validate_upload

__all__ = [
    "JobService",
    "ValidatedUpload",
    "sanitize_filename",
    "sniff_mime_type",
    "validate_upload",
]
