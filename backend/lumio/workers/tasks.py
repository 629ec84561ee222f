"""
Celery Tasks — Document Processing Pipeline

Task: process_job
  Runs one attempt through JobRunner. When the runner reports "retrying",
  the task re-publishes itself with the backoff delay via `self.retry`.
  The ledger bounds the attempt count, so Celery's own retry cap is off.

Task: reap_stalled_jobs
  Celery beat, every `stalled_sweep_interval_seconds`. Requeues jobs whose
  lease expired, republishes queued jobs whose message was lost, and removes
  the files of jobs that ran out of attempts.

Each worker process owns one event loop and one Runtime, created on
`worker_process_init` and reused by every task the process executes.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from typing import Any

from celery import Task
from celery.signals import worker_process_init, worker_process_shutdown

from lumio.core.config import get_settings
from lumio.jobs.dispatch import PROCESS_JOB_TASK
from lumio.observability.tracing import TracingConfig, configure_logging
from lumio.runtime import Runtime
from lumio.workers.celery_app import HEALTH_CHECK_TASK, REAP_STALLED_TASK, celery_app

logger = logging.getLogger(__name__)

_loop:    asyncio.AbstractEventLoop | None = None
_runtime: Runtime | None = None


# ---------------------------------------------------------------------------
# Async task helper
# Run coroutines on the process-wide loop so Redis connections are reused.
# ---------------------------------------------------------------------------

def _process_loop() -> asyncio.AbstractEventLoop:
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop


def run_async(coro):
    """Execute a coroutine from a synchronous Celery task."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return _process_loop().run_until_complete(coro)

    # Eager mode inside a running loop (dev server): hop to a fresh thread
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()


def get_runtime() -> Runtime:
    global _runtime
    if _runtime is None:
        _runtime = Runtime.build(get_settings())
    return _runtime


def set_runtime(runtime: Runtime | None) -> None:
    """Install a prebuilt runtime (eager mode shares the API's runtime)."""
    global _runtime
    _runtime = runtime


@worker_process_init.connect
def on_worker_process_init(**_: Any) -> None:
    settings = get_settings()
    configure_logging(settings)
    TracingConfig.init(settings)
    get_runtime()


@worker_process_shutdown.connect
def on_worker_process_shutdown(**_: Any) -> None:
    global _runtime
    if _runtime is not None:
        run_async(_runtime.close())
        _runtime = None
    if _loop is not None and not _loop.is_closed():
        _loop.close()


# ---------------------------------------------------------------------------
# Main processing task
# ---------------------------------------------------------------------------

@celery_app.task(
    name=PROCESS_JOB_TASK,
    bind=True,
    max_retries=None,
    acks_late=True,
    reject_on_worker_lost=True,
)
def process_job(self: Task, job_id: str) -> dict[str, Any]:
    outcome = run_async(get_runtime().runner.run(job_id))

    if outcome.status == "retrying":
        raise self.retry(countdown=outcome.delay_seconds, max_retries=None)

    return outcome.as_dict()


# ---------------------------------------------------------------------------
# Stalled-job sweep (Celery beat)
# ---------------------------------------------------------------------------

@celery_app.task(
    name=REAP_STALLED_TASK,
    acks_late=True,
    soft_time_limit=55,
    time_limit=60,
)
def reap_stalled_jobs() -> dict[str, int]:
    runtime = get_runtime()
    return run_async(
        runtime.runner.reap_stalled(grace_seconds=runtime.settings.stalled_sweep_interval_seconds)
    )


# ---------------------------------------------------------------------------
# Health check task
# ---------------------------------------------------------------------------

@celery_app.task(name=HEALTH_CHECK_TASK)
def health_check() -> dict[str, str]:
    healthy = run_async(get_runtime().ping())
    return {"status": "ok" if healthy else "degraded", "worker": get_runtime().runner.worker_id}
