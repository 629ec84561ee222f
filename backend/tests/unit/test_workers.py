"""
Unit Tests — Celery dispatch and tasks
════════════════════════════════════════
Tasks are executed in-process with `Task.apply()`; no broker or worker is
started. The process-wide runtime is replaced with the in-memory one from
conftest.py for the duration of each test.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from lumio.jobs.dispatch import PROCESS_JOB_QUEUE, PROCESS_JOB_TASK, CeleryDispatcher
from lumio.schemas.jobs import JobState


@pytest.fixture
def worker_runtime(runtime):
    from lumio.workers import tasks

    tasks.set_runtime(runtime)
    yield runtime
    tasks.set_runtime(None)


@pytest.mark.unit
class TestCeleryDispatcher:

    def test_dispatch_publishes_job_id_as_task_id(self):
        app = MagicMock()
        app.conf.task_always_eager = False

        CeleryDispatcher(app).dispatch("job-1", delay_seconds=4.0)

        app.send_task.assert_called_once_with(
            PROCESS_JOB_TASK,
            kwargs={"job_id": "job-1"},
            task_id="job-1",
            queue=PROCESS_JOB_QUEUE,
            countdown=4.0,
        )

    def test_immediate_dispatch_has_no_countdown(self):
        app = MagicMock()
        app.conf.task_always_eager = False

        CeleryDispatcher(app).dispatch("job-1")

        assert app.send_task.call_args.kwargs["countdown"] is None

    def test_cancel_revokes(self):
        app = MagicMock()
        CeleryDispatcher(app).cancel("job-1")
        app.control.revoke.assert_called_once_with("job-1")


@pytest.mark.unit
class TestTasks:

    def test_process_job(self, worker_runtime, png_bytes):
        from lumio.workers.tasks import process_job, run_async

        job_id = run_async(worker_runtime.service.submit(png_bytes, "image/png", "scan.png")).job_id

        outcome = process_job.apply(kwargs={"job_id": job_id}).get()

        assert outcome["status"] == "succeeded"
        assert outcome["job_id"] == job_id
        snapshot = run_async(worker_runtime.service.get_status(job_id))
        assert snapshot.status == JobState.SUCCEEDED

    def test_process_unknown_job_is_skipped(self, worker_runtime):
        from lumio.jobs.queue import new_job_id
        from lumio.workers.tasks import process_job

        outcome = process_job.apply(kwargs={"job_id": new_job_id()}).get()

        assert outcome["status"] == "skipped"

    def test_reap_stalled_jobs(self, worker_runtime):
        from lumio.workers.tasks import reap_stalled_jobs

        assert reap_stalled_jobs.apply().get() == {"requeued": 0, "failed": 0}

    def test_health_check(self, worker_runtime):
        from lumio.workers.tasks import health_check

        result = health_check.apply().get()

        assert result["status"] == "ok"
        assert result["worker"] == worker_runtime.runner.worker_id


@pytest.mark.unit
class TestCeleryConfig:

    def test_time_limits_follow_job_timeout_not_lease(self):
        from lumio.core.config import settings
        from lumio.workers.celery_app import celery_app

        conf = celery_app.conf

        assert conf.task_soft_time_limit == settings.job_timeout_seconds
        assert conf.task_time_limit > conf.task_soft_time_limit
        assert conf.task_soft_time_limit > settings.job_lease_seconds
        assert conf.broker_transport_options["visibility_timeout"] > conf.task_time_limit
