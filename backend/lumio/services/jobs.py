"""
JobService — the operations exposed to clients.

  submit(bytes, mime, filename, owner) → SubmitResponse
  get_status(job_id)                   → JobStatusSnapshot
  get_result(job_id)                   → JobResult | JobNotReadyError | JobFailedError | JobNotFoundError
  delete(job_id)                       → None (idempotent)
  analyze(text, targets)               → AnalysisReport (synchronous, no extraction)
  hashtags(text)                       → HashtagReport

Transport-agnostic: the FastAPI routers are a thin mapping onto this class.
"""

from __future__ import annotations

import logging
from typing import Iterable

from lumio.analysis.engine import ContentAnalysisEngine
from lumio.core.exceptions import (
    JobFailedError,
    JobNotFoundError,
    JobNotReadyError,
    TextTooLongError,
)
from lumio.jobs.queue import JobQueue, is_job_id, new_job_id
from lumio.schemas.analysis import ALL_PLATFORMS, AnalysisReport, HashtagReport, Platform
from lumio.schemas.jobs import (
    JobPayload,
    JobResult,
    JobState,
    JobStatusSnapshot,
    QueueStats,
    SubmitResponse,
)
from lumio.services.uploads import validate_upload
from lumio.storage.files import UploadFileStore
from lumio.storage.results import ResultStore

logger = logging.getLogger(__name__)


class JobService:

    def __init__(
        self,
        queue:              JobQueue,
        files:              UploadFileStore,
        results:            ResultStore,
        analyzer:           ContentAnalysisEngine,
        max_file_bytes:     int = 10 * 1024 * 1024,
        max_analysis_chars: int = 50_000,
    ) -> None:
        self._queue              = queue
        self._files              = files
        self._results            = results
        self._analyzer           = analyzer
        self._max_file_bytes     = max_file_bytes
        self._max_analysis_chars = max_analysis_chars

    @property
    def max_file_bytes(self) -> int:
        return self._max_file_bytes

    # ------------------------------------------------------------------
    # Document jobs
    # ------------------------------------------------------------------

    async def submit(
        self,
        data:      bytes,
        mime_type: str | None,
        filename:  str | None,
        owner_id:  str | None = None,
    ) -> SubmitResponse:
        upload = validate_upload(data, mime_type, filename, self._max_file_bytes)
        job_id = new_job_id()
        path = await self._files.write(job_id, upload.safe_name, data)

        payload = JobPayload(
            file_path=str(path),
            filename=upload.safe_name,
            mime_type=upload.mime_type,
            size_bytes=upload.size_bytes,
            owner_id=owner_id,
        )
        try:
            await self._queue.enqueue(payload, job_id=job_id)
        except Exception:
            await self._files.delete(path)
            raise

        return SubmitResponse(job_id=job_id, status=JobState.QUEUED)

    async def get_status(self, job_id: str) -> JobStatusSnapshot:
        self._require_job_id(job_id)
        return await self._queue.get_status(job_id)

    async def get_result(self, job_id: str) -> JobResult:
        self._require_job_id(job_id)
        job = await self._queue.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        if job.state == JobState.FAILED:
            raise JobFailedError(job_id, job.error)
        if job.state != JobState.SUCCEEDED:
            raise JobNotReadyError(job_id, job.percent)

        result = await self._results.get(job_id)
        if result is None:
            raise JobNotFoundError(job_id)
        return result

    async def delete(self, job_id: str) -> None:
        if not is_job_id(job_id):
            return
        job = await self._queue.get(job_id)
        await self._queue.delete(job_id)
        await self._results.delete(job_id)

        # a live worker removes its own file at the next checkpoint; once the
        # record is gone the sweep can no longer find a crashed worker's job
        if job is None:
            return
        if job.state != JobState.PROCESSING or job.lease_expired():
            await self._files.delete(job.payload.file_path)

    async def stats(self) -> QueueStats:
        return await self._queue.stats()

    # ------------------------------------------------------------------
    # Direct analysis
    # ------------------------------------------------------------------

    async def analyze(
        self,
        text:    str,
        targets: Iterable[Platform] = ALL_PLATFORMS,
    ) -> AnalysisReport:
        self._require_length(text)
        return await self._analyzer.analyze(text, targets)

    async def hashtags(self, text: str) -> HashtagReport:
        self._require_length(text)
        return await self._analyzer.generate_hashtags(text)

    # ------------------------------------------------------------------

    @staticmethod
    def _require_job_id(job_id: str) -> None:
        if not is_job_id(job_id):
            raise JobNotFoundError(job_id)

    def _require_length(self, text: str) -> None:
        if len(text) > self._max_analysis_chars:
            raise TextTooLongError(len(text), self._max_analysis_chars)
