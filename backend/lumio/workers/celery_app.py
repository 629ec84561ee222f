"""
Celery Application Factory

Celery is the durable transport for job messages and provides the worker
pool. Job state itself lives in the ledger (lumio.jobs.store); a message only
says "job X is ready to run".

Broker: Redis. Time limits and the broker visibility timeout follow
`job_timeout_seconds`, the budget for one whole attempt. The ledger lease is
much shorter and is renewed by every checkpoint (one per OCR page), so a crashed
worker is detected by the stalled sweep long before the broker redelivers.

Queue topology:
  jobs.process         document pipeline, one task per job attempt
  system.maintenance   stalled-job sweep (Celery beat) and health checks

Task arguments are job ids only. File bytes never travel through the broker.
"""

from __future__ import annotations

import logging

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun
from kombu import Exchange, Queue

from lumio.core.config import settings
from lumio.jobs.dispatch import PROCESS_JOB_QUEUE, PROCESS_JOB_TASK

logger = logging.getLogger(__name__)

REAP_STALLED_TASK  = "lumio.workers.tasks.reap_stalled_jobs"
HEALTH_CHECK_TASK  = "lumio.workers.tasks.health_check"
MAINTENANCE_QUEUE  = "system.maintenance"

# ---------------------------------------------------------------------------
# Queue and exchange definitions
# ---------------------------------------------------------------------------

JOBS_EXCHANGE = Exchange("jobs", type="direct", durable=True)

TASK_QUEUES = (
    Queue(
        PROCESS_JOB_QUEUE,
        exchange=JOBS_EXCHANGE,
        routing_key=PROCESS_JOB_QUEUE,
        durable=True,
    ),
    Queue(
        MAINTENANCE_QUEUE,
        Exchange("system", type="direct"),
        routing_key=MAINTENANCE_QUEUE,
        durable=True,
    ),
)

TASK_ROUTES = {
    PROCESS_JOB_TASK:  {"queue": PROCESS_JOB_QUEUE},
    REAP_STALLED_TASK: {"queue": MAINTENANCE_QUEUE},
    HEALTH_CHECK_TASK: {"queue": MAINTENANCE_QUEUE},
}

# ---------------------------------------------------------------------------
# Celery app factory
# ---------------------------------------------------------------------------

def create_celery_app() -> Celery:
    app = Celery("lumio")

    app.conf.update(
        # --- Broker / Backend ---
        broker_url=settings.celery_broker_url,
        result_backend=settings.celery_result_backend,
        broker_transport_options={"visibility_timeout": settings.job_timeout_seconds + 60},

        # --- Serialization (reject non-JSON messages) ---
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        event_serializer="json",

        # --- Queues ---
        task_queues=TASK_QUEUES,
        task_routes=TASK_ROUTES,
        task_default_queue=PROCESS_JOB_QUEUE,
        task_default_exchange="jobs",
        task_default_routing_key=PROCESS_JOB_QUEUE,

        # --- Reliability ---
        task_acks_late=True,              # ack only after the attempt finished
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,     # each slot holds exactly one job
        worker_concurrency=settings.worker_concurrency,

        # --- Timeouts ---
        task_soft_time_limit=settings.job_timeout_seconds,
        task_time_limit=settings.job_timeout_seconds + 30,

        # --- Results (state is tracked in the ledger, not here) ---
        result_expires=3600,

        # --- Dev / tests ---
        task_always_eager=settings.celery_always_eager,

        # --- Timezone ---
        timezone="UTC",
        enable_utc=True,

        # --- Beat schedule (stalled-job sweep) ---
        beat_schedule={
            "reap-stalled-jobs": {
                "task":     REAP_STALLED_TASK,
                "schedule": settings.stalled_sweep_interval_seconds,
                "options":  {"queue": MAINTENANCE_QUEUE},
            },
        },

        # --- Worker ---
        worker_max_tasks_per_child=200,   # recycle processes to cap memory from OCR
    )

    app.autodiscover_tasks(["lumio.workers"])

    return app


celery_app = create_celery_app()


# ---------------------------------------------------------------------------
# Celery signals: task lifecycle logging
# ---------------------------------------------------------------------------

@task_prerun.connect
def on_task_prerun(task_id, task, args, kwargs, **_):
    logger.info(
        "Task start | task_id=%s task=%s job_id=%s retries=%s",
        task_id, task.name, (kwargs or {}).get("job_id", "-"), task.request.retries,
    )


@task_postrun.connect
def on_task_postrun(task_id, task, args, kwargs, retval, state, **_):
    logger.info(
        "Task end | task_id=%s task=%s state=%s job_id=%s",
        task_id, task.name, state, (kwargs or {}).get("job_id", "-"),
    )


@task_failure.connect
def on_task_failure(task_id, exception, args, kwargs, traceback, einfo, **_):
    logger.error(
        "Task failed | task_id=%s job_id=%s error=%s",
        task_id, (kwargs or {}).get("job_id", "-"), exception,
        exc_info=True,
    )
