"""
JobQueue — the queue contract on top of the ledger and the dispatcher.

  enqueue(payload)              create the Job (queued) and publish it
  claim(job_id, worker_id)      take the processing lease, or None
  progress(job_id, worker_id)   record a checkpoint and renew the lease (HELD / LOST / GONE)
  ack(job_id, worker_id)        → succeeded
  nack(job_id, worker_id, err)  → queued with backoff, or failed when exhausted
  get_status(job_id)            polling snapshot
  delete(job_id)                idempotent removal + best-effort revoke
  sweep_stalled()               recover expired leases and unpublished jobs

Delivery is at-least-once: a message may arrive twice, or after its job was
deleted. claim() is where duplicates are filtered out.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field

from lumio.core.exceptions import JobNotFoundError
from lumio.jobs.dispatch import JobDispatcher
from lumio.jobs.store import JobStore
from lumio.schemas.jobs import (
    Job,
    JobPayload,
    JobState,
    JobStatusSnapshot,
    LeaseStatus,
    QueueStats,
    RetryDecision,
)

logger = logging.getLogger(__name__)

JOB_ID_PREFIX = "job-"

# messages may arrive marginally before available_at (clock skew between hosts)
_EARLY_DELIVERY_TOLERANCE_SECONDS = 1.0


def new_job_id() -> str:
    return f"{JOB_ID_PREFIX}{uuid.uuid4()}"


def is_job_id(value: str) -> bool:
    if not value.startswith(JOB_ID_PREFIX):
        return False
    try:
        uuid.UUID(value[len(JOB_ID_PREFIX):])
    except ValueError:
        return False
    return True


def _holds_lease(job: Job, worker_id: str) -> bool:
    return job.state == JobState.PROCESSING and job.lease_owner == worker_id


def _lease_status(outcome: tuple[Job, bool] | None) -> LeaseStatus:
    if outcome is None:
        return LeaseStatus.GONE
    return LeaseStatus.HELD if outcome[1] else LeaseStatus.LOST


@dataclass
class StalledSweep:
    requeued: list[str] = field(default_factory=list)
    failed:   list[Job] = field(default_factory=list)


class JobQueue:

    def __init__(
        self,
        store:                JobStore,
        dispatcher:           JobDispatcher,
        max_attempts:         int   = 3,
        backoff_base_seconds: float = 2.0,
        lease_seconds:        int   = 300,
        clock=time.time,
    ) -> None:
        self._store        = store
        self._dispatcher   = dispatcher
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base_seconds
        self._lease        = lease_seconds
        self._clock        = clock

    @property
    def store(self) -> JobStore:
        return self._store

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    async def enqueue(self, payload: JobPayload, job_id: str | None = None) -> str:
        now = self._clock()
        job = Job(
            id=job_id or new_job_id(),
            payload=payload,
            max_attempts=self._max_attempts,
            backoff_base_seconds=self._backoff_base,
            message="Queued",
            available_at=now,
            created_at=now,
            updated_at=now,
        )
        await self._store.create(job)

        try:
            self._dispatcher.dispatch(job.id)
        except Exception as exc:
            # the record stays queued; the stalled-job sweep republishes it
            logger.warning("Dispatch failed, left for sweep | job_id=%s error=%s", job.id, exc)

        logger.info(
            "Job enqueued | job_id=%s file=%s mime=%s bytes=%d",
            job.id, payload.filename, payload.mime_type, payload.size_bytes,
        )
        return job.id

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    async def claim(self, job_id: str, worker_id: str) -> Job | None:
        now = self._clock()

        # expired leases are recovered only by sweep_stalled()
        def _claim(job: Job) -> bool:
            if job.state != JobState.QUEUED:
                return False
            if job.available_at > now + _EARLY_DELIVERY_TOLERANCE_SECONDS:
                return False
            job.transition(JobState.PROCESSING)
            job.attempts        += 1
            job.lease_owner      = worker_id
            job.lease_expires_at = now + self._lease
            job.message          = f"Processing (attempt {job.attempts}/{job.max_attempts})"
            return True

        outcome = await self._store.update(job_id, _claim)
        if outcome is None:
            logger.info("Claim skipped, job gone | job_id=%s", job_id)
            return None

        job, changed = outcome
        if not changed:
            logger.info(
                "Claim skipped | job_id=%s state=%s lease_owner=%s",
                job_id, job.state.value, job.lease_owner,
            )
            return None
        return job

    async def progress(
        self,
        job_id:    str,
        worker_id: str,
        percent:   int,
        message:   str | None = None,
    ) -> LeaseStatus:
        """Record a checkpoint and renew the lease if the worker still holds it."""
        now = self._clock()

        def _progress(job: Job) -> bool:
            if not _holds_lease(job, worker_id):
                return False
            job.percent          = max(job.percent, min(100, percent))
            job.message          = message or job.message
            job.lease_expires_at = now + self._lease
            job.updated_at       = now
            return True

        return _lease_status(await self._store.update(job_id, _progress))

    async def lease_status(self, job_id: str, worker_id: str) -> LeaseStatus:
        job = await self._store.get(job_id)
        if job is None:
            return LeaseStatus.GONE
        return LeaseStatus.HELD if _holds_lease(job, worker_id) else LeaseStatus.LOST

    async def ack(self, job_id: str, worker_id: str) -> LeaseStatus:
        now = self._clock()

        def _ack(job: Job) -> bool:
            if not _holds_lease(job, worker_id):
                return False
            job.transition(JobState.SUCCEEDED)
            job.percent     = 100
            job.message     = "Completed"
            job.error       = None
            job.finished_at = now
            self._clear_lease(job)
            return True

        return _lease_status(await self._store.update(job_id, _ack))

    async def nack(self, job_id: str, worker_id: str, error: str) -> RetryDecision | None:
        """
        Record a failed attempt. None means the job was deleted or is no
        longer ours; nothing further should happen to it.
        """
        now = self._clock()

        def _nack(job: Job) -> bool:
            if not _holds_lease(job, worker_id):
                return False
            self._fail_attempt(job, error, now)
            return True

        outcome = await self._store.update(job_id, _nack)
        if outcome is None or not outcome[1]:
            return None

        job = outcome[0]
        will_retry = job.state == JobState.QUEUED
        return RetryDecision(
            job_id=job.id,
            attempt=job.attempts,
            will_retry=will_retry,
            delay_seconds=job.backoff_delay() if will_retry else 0.0,
            reason=error,
        )

    # ------------------------------------------------------------------
    # Client side
    # ------------------------------------------------------------------

    async def get(self, job_id: str) -> Job | None:
        return await self._store.get(job_id)

    async def get_status(self, job_id: str) -> JobStatusSnapshot:
        job = await self._store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        message = job.error if job.state == JobState.FAILED else job.message
        return JobStatusSnapshot(
            job_id=job.id,
            status=job.state,
            percent=job.percent,
            message=message,
            attempts=job.attempts,
        )

    async def delete(self, job_id: str) -> bool:
        existed = await self._store.delete(job_id)
        if existed:
            try:
                self._dispatcher.cancel(job_id)
            except Exception as exc:
                logger.warning("Revoke failed | job_id=%s error=%s", job_id, exc)
            logger.info("Job deleted | job_id=%s", job_id)
        return existed

    async def stats(self) -> QueueStats:
        return QueueStats(
            queued=await self._store.count(JobState.QUEUED),
            processing=await self._store.count(JobState.PROCESSING),
            succeeded=await self._store.count(JobState.SUCCEEDED),
            failed=await self._store.count(JobState.FAILED),
        )

    # ------------------------------------------------------------------
    # Stalled-job recovery
    # ------------------------------------------------------------------

    async def sweep_stalled(self, grace_seconds: float = 60.0, limit: int = 100) -> StalledSweep:
        """
        Recover jobs nobody is working on:
          - processing with an expired lease (worker crashed or hung)
          - queued and overdue by more than `grace_seconds` (publish lost)
        """
        now = self._clock()
        sweep = StalledSweep()

        def _recover(job: Job) -> bool:
            if job.state == JobState.PROCESSING and job.lease_expired(now):
                self._release_expired(job, now)
                return True
            return False

        for job_id in await self._store.ids_in_state(JobState.PROCESSING, limit):
            outcome = await self._store.update(job_id, _recover)
            if outcome is None or not outcome[1]:
                continue
            job = outcome[0]
            if job.state == JobState.FAILED:
                sweep.failed.append(job)
            else:
                self._redispatch(job.id, sweep)

        for job_id in await self._store.ids_in_state(JobState.QUEUED, limit):
            job = await self._store.get(job_id)
            if job is None or job.id in sweep.requeued:
                continue
            if job.available_at + grace_seconds < now:
                self._redispatch(job.id, sweep)

        if sweep.requeued or sweep.failed:
            logger.warning(
                "Stalled sweep | requeued=%d failed=%d",
                len(sweep.requeued), len(sweep.failed),
            )
        return sweep

    def _redispatch(self, job_id: str, sweep: StalledSweep) -> None:
        try:
            self._dispatcher.dispatch(job_id)
            sweep.requeued.append(job_id)
        except Exception as exc:
            logger.warning("Redispatch failed | job_id=%s error=%s", job_id, exc)

    # ------------------------------------------------------------------
    # State helpers (run inside store.update)
    # ------------------------------------------------------------------

    @staticmethod
    def _clear_lease(job: Job) -> None:
        job.lease_owner      = None
        job.lease_expires_at = None

    def _fail_attempt(self, job: Job, error: str, now: float) -> None:
        self._clear_lease(job)
        job.error = error
        if job.attempts_exhausted:
            job.transition(JobState.FAILED)
            job.message     = "Failed"
            job.finished_at = now
            logger.error(
                "Job failed | job_id=%s attempts=%d reason=%s", job.id, job.attempts, error,
            )
            return

        delay = job.backoff_delay()
        job.transition(JobState.QUEUED)
        job.available_at = now + delay
        job.message      = f"Retrying in {delay:.0f}s (attempt {job.attempts}/{job.max_attempts} failed)"
        logger.warning(
            "Job retry scheduled | job_id=%s attempt=%d/%d delay=%.1fs error=%s",
            job.id, job.attempts, job.max_attempts, delay, error,
        )

    def _release_expired(self, job: Job, now: float) -> None:
        """An expired lease counts as a failed attempt without backoff."""
        error = f"Worker lease expired (owner={job.lease_owner})"
        self._fail_attempt(job, error, now)
        if job.state == JobState.QUEUED:
            job.available_at = now
