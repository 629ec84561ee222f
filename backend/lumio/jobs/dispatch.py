"""
Job dispatch — publish "run job X" messages to the worker pool.

The Celery task id is the job id, so a queued message can be revoked when
its job is deleted and duplicate publishes are easy to spot in the logs.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from celery import Celery

logger = logging.getLogger(__name__)

PROCESS_JOB_TASK  = "lumio.workers.tasks.process_job"
PROCESS_JOB_QUEUE = "jobs.process"


class JobDispatcher(Protocol):

    def dispatch(self, job_id: str, delay_seconds: float = 0.0) -> None: ...

    def cancel(self, job_id: str) -> None: ...


class CeleryDispatcher:

    def __init__(self, celery_app: "Celery") -> None:
        self._app = celery_app

    def dispatch(self, job_id: str, delay_seconds: float = 0.0) -> None:
        options = {
            "kwargs":    {"job_id": job_id},
            "task_id":   job_id,
            "queue":     PROCESS_JOB_QUEUE,
            "countdown": delay_seconds or None,
        }
        if self._app.conf.task_always_eager:
            # send_task bypasses eager mode; go through the registered task
            from lumio.workers import tasks

            tasks.process_job.apply_async(**options)
        else:
            self._app.send_task(PROCESS_JOB_TASK, **options)
        logger.debug("Job dispatched | job_id=%s delay=%.1fs", job_id, delay_seconds)

    def cancel(self, job_id: str) -> None:
        # Revoke only drops messages not yet started; running jobs notice
        # the deleted ledger record at their next checkpoint.
        self._app.control.revoke(job_id)
