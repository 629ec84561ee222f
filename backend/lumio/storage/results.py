"""
Result store — job id → JobResult, written once on success, TTL-bound.

Write failures propagate: a job that cannot persist its result must not be
reported as succeeded.
"""

from __future__ import annotations

import logging

from lumio.observability.tracing import traced
from lumio.schemas.jobs import JobResult
from lumio.storage.backends import KeyValueBackend

logger = logging.getLogger(__name__)


class ResultStore:

    def __init__(self, backend: KeyValueBackend, ttl_seconds: int = 24 * 60 * 60) -> None:
        self._backend = backend
        self._ttl     = ttl_seconds

    @staticmethod
    def _key(job_id: str) -> str:
        return f"result:{job_id}"

    @traced("persistence")
    async def save(self, result: JobResult) -> None:
        await self._backend.set(self._key(result.job_id), result.model_dump_json(), self._ttl)
        logger.info("Result stored | job_id=%s ttl=%ds", result.job_id, self._ttl)

    async def get(self, job_id: str) -> JobResult | None:
        raw = await self._backend.get(self._key(job_id))
        return JobResult.model_validate_json(raw) if raw is not None else None

    async def delete(self, job_id: str) -> bool:
        return await self._backend.delete(self._key(job_id)) > 0
