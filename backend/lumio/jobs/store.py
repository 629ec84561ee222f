"""
Job ledger — durable Job records and their state indexes.

The ledger is the source of truth for job state; the Celery broker only
carries "job X is ready to run" messages. Every state change goes through
`update()`, an atomic read-modify-write:

  InMemoryJobStore   threading.Lock around a dict
  RedisJobStore      WATCH / MULTI / EXEC optimistic transaction, retried on
                     WatchError

Redis layout (prefix "lumio:"):
  lumio:job:{id}           JSON Job record, TTL = job_ttl_seconds
  lumio:jobs:{state}       sorted set of ids, score = record expiry time
                           (expired members are pruned before each read)
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

from lumio.schemas.jobs import Job, JobState

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# mutate(job) -> True to persist the (modified) job, False to leave it alone
Mutator = Callable[[Job], bool]


class JobStore(ABC):

    @abstractmethod
    async def create(self, job: Job) -> None: ...

    @abstractmethod
    async def get(self, job_id: str) -> Job | None: ...

    @abstractmethod
    async def update(self, job_id: str, mutate: Mutator) -> tuple[Job, bool] | None:
        """
        Atomically apply `mutate` to the stored job.

        Returns (job, changed), or None if the job does not exist. Exceptions
        raised by `mutate` abort the update and propagate.
        """

    @abstractmethod
    async def delete(self, job_id: str) -> bool: ...

    @abstractmethod
    async def ids_in_state(self, state: JobState, limit: int = 100) -> list[str]: ...

    @abstractmethod
    async def count(self, state: JobState) -> int: ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

class InMemoryJobStore(JobStore):
    """Single-process ledger for development and tests."""

    def __init__(self, ttl_seconds: int = 24 * 60 * 60, clock=time.time) -> None:
        self._jobs: dict[str, tuple[Job, float]] = {}
        self._ttl   = ttl_seconds
        self._lock  = threading.Lock()
        self._clock = clock

    def _live(self, job_id: str) -> Job | None:
        entry = self._jobs.get(job_id)
        if entry is None:
            return None
        job, expires_at = entry
        if self._clock() >= expires_at:
            del self._jobs[job_id]
            return None
        return job

    def _put(self, job: Job) -> None:
        self._jobs[job.id] = (job.model_copy(deep=True), self._clock() + self._ttl)

    async def create(self, job: Job) -> None:
        with self._lock:
            if self._live(job.id) is not None:
                raise ValueError(f"Job {job.id} already exists")
            self._put(job)

    async def get(self, job_id: str) -> Job | None:
        with self._lock:
            job = self._live(job_id)
            return job.model_copy(deep=True) if job is not None else None

    async def update(self, job_id: str, mutate: Mutator) -> tuple[Job, bool] | None:
        with self._lock:
            current = self._live(job_id)
            if current is None:
                return None
            job = current.model_copy(deep=True)
            if not mutate(job):
                return job, False
            self._put(job)
            return job.model_copy(deep=True), True

    async def delete(self, job_id: str) -> bool:
        with self._lock:
            existed = self._live(job_id) is not None
            self._jobs.pop(job_id, None)
            return existed

    def _state_of(self, job_id: str) -> JobState | None:
        job = self._live(job_id)
        return job.state if job is not None else None

    async def ids_in_state(self, state: JobState, limit: int = 100) -> list[str]:
        with self._lock:
            ids = [jid for jid in list(self._jobs) if self._state_of(jid) == state]
        return ids[:limit]

    async def count(self, state: JobState) -> int:
        with self._lock:
            return sum(1 for jid in list(self._jobs) if self._state_of(jid) == state)


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------

class RedisJobStore(JobStore):

    def __init__(
        self,
        client:      "Redis",
        key_prefix:  str = "lumio:",
        ttl_seconds: int = 24 * 60 * 60,
    ) -> None:
        self._client = client
        self._prefix = key_prefix
        self._ttl    = ttl_seconds

    def _job_key(self, job_id: str) -> str:
        return f"{self._prefix}job:{job_id}"

    def _state_key(self, state: JobState) -> str:
        return f"{self._prefix}jobs:{state.value}"

    def _queue_write(self, pipe, job: Job, previous: JobState | None) -> None:
        """Buffer the record write and index move on a MULTI pipeline."""
        expires_at = time.time() + self._ttl
        pipe.set(self._job_key(job.id), job.model_dump_json(), ex=self._ttl)
        if previous is not None and previous != job.state:
            pipe.zrem(self._state_key(previous), job.id)
        pipe.zadd(self._state_key(job.state), {job.id: expires_at})

    async def create(self, job: Job) -> None:
        async with self._client.pipeline(transaction=True) as pipe:
            self._queue_write(pipe, job, previous=None)
            await pipe.execute()

    async def get(self, job_id: str) -> Job | None:
        raw = await self._client.get(self._job_key(job_id))
        return Job.model_validate_json(raw) if raw is not None else None

    async def update(self, job_id: str, mutate: Mutator) -> tuple[Job, bool] | None:
        from redis.exceptions import WatchError

        key = self._job_key(job_id)
        async with self._client.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is None:
                        await pipe.unwatch()
                        return None

                    job = Job.model_validate_json(raw)
                    previous = job.state
                    if not mutate(job):
                        await pipe.unwatch()
                        return job, False

                    pipe.multi()
                    self._queue_write(pipe, job, previous)
                    await pipe.execute()
                    return job, True
                except WatchError:
                    logger.debug("Job update contended, retrying | job_id=%s", job_id)
                    continue

    async def delete(self, job_id: str) -> bool:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.delete(self._job_key(job_id))
            for state in JobState:
                pipe.zrem(self._state_key(state), job_id)
            results = await pipe.execute()
        return bool(results[0])

    async def _prune(self, state: JobState) -> None:
        await self._client.zremrangebyscore(self._state_key(state), "-inf", time.time())

    async def ids_in_state(self, state: JobState, limit: int = 100) -> list[str]:
        await self._prune(state)
        return list(await self._client.zrange(self._state_key(state), 0, limit - 1))

    async def count(self, state: JobState) -> int:
        await self._prune(state)
        return int(await self._client.zcard(self._state_key(state)))

    async def ping(self) -> bool:
        return bool(await self._client.ping())
