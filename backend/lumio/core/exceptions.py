"""
Error taxonomy for the document pipeline.

  UploadRejectedError     submit-time validation (never enqueued)
  ProviderError           AI service failures; TransientProviderError is retried
                          inside the engine, then the engine falls back
  ExtractionError         job-fatal document problems (queue-level retry applies)
  Job*Error               lifecycle conditions surfaced to polling clients
"""

from __future__ import annotations


class LumioError(Exception):
    """Base class for every error raised by the pipeline."""


# ---------------------------------------------------------------------------
# Submit-time validation
# ---------------------------------------------------------------------------

class UploadRejectedError(LumioError):
    error_code = "UPLOAD_REJECTED"


class EmptyFileError(UploadRejectedError):
    error_code = "EMPTY_FILE"


class FileTooLargeError(UploadRejectedError):
    error_code = "FILE_TOO_LARGE"

    def __init__(self, size_bytes: int, limit_bytes: int) -> None:
        super().__init__(
            f"Received {size_bytes:,} bytes; limit is {limit_bytes:,} bytes."
        )
        self.size_bytes  = size_bytes
        self.limit_bytes = limit_bytes


class UnsupportedFileTypeError(UploadRejectedError):
    error_code = "UNSUPPORTED_FILE_TYPE"


class TextTooLongError(LumioError):
    error_code = "TEXT_TOO_LONG"

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(f"Text is {length:,} characters; limit is {limit:,}.")
        self.length = length
        self.limit  = limit


# ---------------------------------------------------------------------------
# AI providers
# ---------------------------------------------------------------------------

class ProviderError(LumioError):
    """An AI provider call failed in a way that should not be retried."""


class TransientProviderError(ProviderError):
    """Timeout, 5xx, rate limit or connection failure; safe to retry."""


class ProviderResponseError(TransientProviderError):
    """The provider answered, but not with the JSON we asked for."""


# ---------------------------------------------------------------------------
# Processing
# ---------------------------------------------------------------------------

class ExtractionError(LumioError):
    """The document could not be read or yielded no processable page."""


# ---------------------------------------------------------------------------
# Job lifecycle
# ---------------------------------------------------------------------------

class JobNotFoundError(LumioError):
    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} not found or expired")
        self.job_id = job_id


class JobNotReadyError(LumioError):
    def __init__(self, job_id: str, percent: int = 0) -> None:
        super().__init__(f"Job {job_id} is still processing")
        self.job_id  = job_id
        self.percent = percent


class JobFailedError(LumioError):
    def __init__(self, job_id: str, reason: str | None) -> None:
        super().__init__(f"Job {job_id} failed: {reason or 'unknown error'}")
        self.job_id = job_id
        self.reason = reason


class JobCancelledError(LumioError):
    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} was deleted while processing")
        self.job_id = job_id


class LeaseLostError(LumioError):
    """The attempt's lease was reclaimed; the job now belongs to someone else."""

    def __init__(self, job_id: str, worker_id: str) -> None:
        super().__init__(f"Job {job_id}: lease no longer held by {worker_id}")
        self.job_id    = job_id
        self.worker_id = worker_id


class InvalidJobTransitionError(LumioError):
    def __init__(self, job_id: str, current: str, target: str) -> None:
        super().__init__(f"Job {job_id}: illegal transition {current} -> {target}")
        self.job_id  = job_id
        self.current = current
        self.target  = target
