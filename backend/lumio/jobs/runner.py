"""
JobRunner — one attempt of one job, start to finish.

Pipeline (strictly sequential per job):

    claim ─► read file (10) ─► extract (20..59, one heartbeat per page)
          ─► redact + analyze (60) ─► persist result (90) ─► ack (100)

Each checkpoint renews the lease and tells the runner where it stands:
  - HELD: carry on
  - GONE: the client deleted the job → JobCancelledError, attempt is terminal
  - LOST: the stalled sweep reclaimed the lease and the job now belongs to
          another attempt → LeaseLostError, the attempt is abandoned and
          leaves the file alone

Failure handling:
  - any exception → nack → retry with backoff, or failed when exhausted
  - the temporary file is removed in a `finally` block once the job reaches
    a terminal outcome (succeeded, failed, cancelled), never while a retry
    is still pending and never by an attempt that lost its lease
"""

from __future__ import annotations

import logging
import os
import socket
import time
from dataclasses import asdict, dataclass
from typing import Literal

from lumio.analysis.engine import ContentAnalysisEngine
from lumio.analysis.pii import redact_pii
from lumio.core.exceptions import ExtractionError, JobCancelledError, LeaseLostError
from lumio.jobs.queue import JobQueue
from lumio.processing.extractor import TextExtractorOrchestrator
from lumio.schemas.jobs import Job, JobMeta, JobResult, LeaseStatus
from lumio.storage.files import UploadFileStore
from lumio.storage.results import ResultStore

logger = logging.getLogger(__name__)

OutcomeStatus = Literal["succeeded", "retrying", "failed", "cancelled", "abandoned", "skipped"]

# extraction heartbeats report progress inside this band
_EXTRACT_PERCENT_START = 20
_EXTRACT_PERCENT_END   = 59


def default_worker_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


@dataclass
class JobOutcome:
    job_id:        str
    status:        OutcomeStatus
    attempt:       int = 0
    delay_seconds: float = 0.0
    error:         str | None = None
    elapsed_ms:    float = 0.0

    def as_dict(self) -> dict:
        return asdict(self)


class JobRunner:

    def __init__(
        self,
        queue:     JobQueue,
        files:     UploadFileStore,
        extractor: TextExtractorOrchestrator,
        analyzer:  ContentAnalysisEngine,
        results:   ResultStore,
        worker_id: str | None = None,
    ) -> None:
        self._queue     = queue
        self._files     = files
        self._extractor = extractor
        self._analyzer  = analyzer
        self._results   = results
        self._worker_id = worker_id or default_worker_id()

    @property
    def worker_id(self) -> str:
        return self._worker_id

    async def run(self, job_id: str) -> JobOutcome:
        job = await self._queue.claim(job_id, self._worker_id)
        if job is None:
            return JobOutcome(job_id=job_id, status="skipped")

        t0 = time.perf_counter()
        terminal = False
        outcome: JobOutcome

        try:
            result = await self._process(job, t0)
            await self._results.save(result)
            lease = await self._queue.ack(job.id, self._worker_id)
            if lease is LeaseStatus.GONE:
                # deleted between the last checkpoint and ack
                await self._results.delete(job.id)
                raise JobCancelledError(job.id)
            if lease is LeaseStatus.LOST:
                raise LeaseLostError(job.id, self._worker_id)
            terminal = True
            outcome = JobOutcome(job_id=job.id, status="succeeded", attempt=job.attempts)

        except JobCancelledError:
            terminal = True
            outcome = JobOutcome(job_id=job.id, status="cancelled", attempt=job.attempts)

        except LeaseLostError:
            outcome = self._abandoned(job)

        except Exception as exc:
            reason = _failure_reason(exc)
            logger.warning(
                "Job attempt failed | job_id=%s attempt=%d error=%s",
                job.id, job.attempts, reason, exc_info=not isinstance(exc, ExtractionError),
            )
            decision = await self._queue.nack(job.id, self._worker_id, reason)
            if decision is None:
                if await self._queue.lease_status(job.id, self._worker_id) is LeaseStatus.GONE:
                    terminal = True
                    outcome = JobOutcome(job_id=job.id, status="cancelled", attempt=job.attempts)
                else:
                    outcome = self._abandoned(job)
            elif decision.will_retry:
                outcome = JobOutcome(
                    job_id=job.id, status="retrying", attempt=decision.attempt,
                    delay_seconds=decision.delay_seconds, error=reason,
                )
            else:
                terminal = True
                outcome = JobOutcome(
                    job_id=job.id, status="failed", attempt=decision.attempt, error=reason,
                )

        finally:
            if terminal:
                await self._files.delete(job.payload.file_path)

        outcome.elapsed_ms = (time.perf_counter() - t0) * 1000
        logger.info(
            "Job attempt finished | job_id=%s attempt=%d/%d outcome=%s elapsed_ms=%.0f",
            job.id, job.attempts, job.max_attempts, outcome.status, outcome.elapsed_ms,
        )
        return outcome

    async def reap_stalled(self, grace_seconds: float = 60.0) -> dict[str, int]:
        """Sweep expired leases; clean up files of jobs that ran out of attempts."""
        sweep = await self._queue.sweep_stalled(grace_seconds=grace_seconds)
        for job in sweep.failed:
            await self._files.delete(job.payload.file_path)
        return {"requeued": len(sweep.requeued), "failed": len(sweep.failed)}

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _abandoned(self, job: Job) -> JobOutcome:
        logger.warning(
            "Lease lost, attempt abandoned | job_id=%s attempt=%d worker=%s",
            job.id, job.attempts, self._worker_id,
        )
        return JobOutcome(job_id=job.id, status="abandoned", attempt=job.attempts)

    async def _checkpoint(self, job: Job, percent: int, message: str) -> None:
        lease = await self._queue.progress(job.id, self._worker_id, percent, message)
        if lease is LeaseStatus.GONE:
            logger.info("Job cancelled at checkpoint | job_id=%s percent=%d", job.id, percent)
            raise JobCancelledError(job.id)
        if lease is LeaseStatus.LOST:
            raise LeaseLostError(job.id, self._worker_id)

    async def _process(self, job: Job, t0: float) -> JobResult:
        payload = job.payload

        await self._checkpoint(job, 10, "Reading file")
        try:
            data = await self._files.read(payload.file_path)
        except OSError as exc:
            raise ExtractionError(f"Cannot read uploaded file: {exc}") from exc

        async def _page_done(done: int, planned: int) -> None:
            span = _EXTRACT_PERCENT_END - _EXTRACT_PERCENT_START
            percent = _EXTRACT_PERCENT_START + span * done // max(planned, 1)
            await self._checkpoint(job, percent, f"Extracting text (page {done}/{planned})")

        await self._checkpoint(job, _EXTRACT_PERCENT_START, "Extracting text")
        extraction = await self._extractor.extract(data, payload.mime_type, heartbeat=_page_done)

        await self._checkpoint(job, 60, "Analyzing content")
        redaction = redact_pii(extraction.text)
        report = await self._analyzer.analyze(redaction.text)

        await self._checkpoint(job, 90, "Saving result")
        return JobResult(
            job_id=job.id,
            filename=payload.filename,
            extracted_text=redaction.text,
            analysis=report.analysis,
            meta=JobMeta(
                engine=extraction.engine,
                analysis_engine=report.engine,
                processing_time_ms=int((time.perf_counter() - t0) * 1000),
                pii_detected=redaction.detected,
                partial=extraction.partial,
                pages_processed=extraction.pages_processed,
                pages_total=extraction.pages_total,
                cached_analysis=report.cached,
            ),
        )


def _failure_reason(exc: BaseException) -> str:
    message = str(exc).strip()
    return message or type(exc).__name__
