"""
Unit Tests — JobService
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from lumio.core.exceptions import (
    JobFailedError,
    JobNotFoundError,
    JobNotReadyError,
    TextTooLongError,
    UnsupportedFileTypeError,
)
from lumio.jobs.queue import new_job_id
from lumio.schemas.analysis import Platform
from lumio.schemas.jobs import JobState, LeaseStatus


@pytest.mark.unit
class TestSubmit:

    async def test_submit_writes_file_and_enqueues(self, runtime, dispatcher, png_bytes):
        response = await runtime.service.submit(png_bytes, "image/png", "scan.png", owner_id="user-1")

        assert response.status == JobState.QUEUED
        assert dispatcher.job_ids == [response.job_id]
        job = await runtime.queue.get(response.job_id)
        assert job.payload.owner_id == "user-1"
        assert job.payload.mime_type == "image/png"
        assert runtime.files.path_for(response.job_id, "scan.png").exists()

    async def test_rejected_upload_is_never_enqueued(self, runtime, dispatcher):
        with pytest.raises(UnsupportedFileTypeError):
            await runtime.service.submit(b"MZ\x90\x00" + b"\x00" * 64, "application/pdf", "virus.pdf")

        assert dispatcher.dispatched == []
        assert (await runtime.service.stats()).queued == 0

    async def test_enqueue_failure_removes_file(self, runtime, png_bytes):
        with patch.object(runtime.queue, "enqueue", new=AsyncMock(side_effect=ConnectionError("ledger down"))):
            with pytest.raises(ConnectionError):
                await runtime.service.submit(png_bytes, "image/png", "scan.png")

        assert list(runtime.files.root.iterdir()) == []


@pytest.mark.unit
class TestResults:

    async def test_queued_job_is_not_ready(self, runtime, png_bytes):
        response = await runtime.service.submit(png_bytes, "image/png", "scan.png")

        with pytest.raises(JobNotReadyError) as exc_info:
            await runtime.service.get_result(response.job_id)
        assert exc_info.value.percent == 0

    async def test_processing_job_is_not_ready(self, runtime, png_bytes):
        response = await runtime.service.submit(png_bytes, "image/png", "scan.png")
        await runtime.queue.claim(response.job_id, "worker-a:1")
        await runtime.queue.progress(response.job_id, "worker-a:1", 60, "Analyzing content")

        with pytest.raises(JobNotReadyError) as exc_info:
            await runtime.service.get_result(response.job_id)

        assert exc_info.value.percent == 60
        assert (await runtime.service.get_status(response.job_id)).status == JobState.PROCESSING

    async def test_result_saved_before_ack_is_not_served(self, runtime, png_bytes):
        response = await runtime.service.submit(png_bytes, "image/png", "scan.png")
        job_id = response.job_id

        with patch.object(runtime.queue, "ack", new=AsyncMock(return_value=LeaseStatus.LOST)):
            await runtime.runner.run(job_id)
        assert await runtime.results.get(job_id) is not None
        assert (await runtime.service.get_status(job_id)).status == JobState.PROCESSING

        with pytest.raises(JobNotReadyError):
            await runtime.service.get_result(job_id)

    async def test_unknown_job(self, runtime):
        with pytest.raises(JobNotFoundError):
            await runtime.service.get_result(new_job_id())

    @pytest.mark.parametrize("job_id", ["", "abc", "job-123", "job-../../etc"])
    async def test_malformed_id_is_not_found(self, runtime, job_id):
        with pytest.raises(JobNotFoundError):
            await runtime.service.get_status(job_id)

    async def test_failed_job(self, make_runtime, make_ocr_engine, png_bytes):
        runtime = make_runtime(ocr_engines=[make_ocr_engine(fail=True)], job_max_attempts=1)
        response = await runtime.service.submit(png_bytes, "image/png", "scan.png")
        await runtime.runner.run(response.job_id)

        with pytest.raises(JobFailedError) as exc_info:
            await runtime.service.get_result(response.job_id)
        assert "No page could be processed" in exc_info.value.reason

    async def test_expired_result_is_not_found(self, runtime, png_bytes):
        response = await runtime.service.submit(png_bytes, "image/png", "scan.png")
        await runtime.runner.run(response.job_id)
        await runtime.results.delete(response.job_id)

        with pytest.raises(JobNotFoundError):
            await runtime.service.get_result(response.job_id)


@pytest.mark.unit
class TestDelete:

    async def test_delete_is_idempotent(self, runtime, dispatcher, png_bytes):
        response = await runtime.service.submit(png_bytes, "image/png", "scan.png")

        await runtime.service.delete(response.job_id)
        await runtime.service.delete(response.job_id)

        assert dispatcher.cancelled == [response.job_id]
        assert list(runtime.files.root.iterdir()) == []
        with pytest.raises(JobNotFoundError):
            await runtime.service.get_status(response.job_id)

    async def test_delete_removes_result(self, runtime, png_bytes):
        response = await runtime.service.submit(png_bytes, "image/png", "scan.png")
        await runtime.runner.run(response.job_id)

        await runtime.service.delete(response.job_id)

        assert await runtime.results.get(response.job_id) is None

    async def test_delete_leaves_live_worker_file(self, runtime, png_bytes):
        response = await runtime.service.submit(png_bytes, "image/png", "scan.png")
        await runtime.queue.claim(response.job_id, "worker-a:1")

        await runtime.service.delete(response.job_id)

        assert len(list(runtime.files.root.iterdir())) == 1

    async def test_delete_removes_file_of_crashed_worker(self, make_runtime, png_bytes):
        runtime = make_runtime(job_lease_seconds=0)
        response = await runtime.service.submit(png_bytes, "image/png", "scan.png")
        await runtime.queue.claim(response.job_id, "crashed-worker:1")

        await runtime.service.delete(response.job_id)

        assert list(runtime.files.root.iterdir()) == []
        assert await runtime.queue.get(response.job_id) is None

    async def test_delete_unknown_or_malformed_id(self, runtime):
        await runtime.service.delete(new_job_id())
        await runtime.service.delete("not-a-job")


@pytest.mark.unit
class TestDirectAnalysis:

    async def test_analyze(self, runtime):
        report = await runtime.service.analyze("Great launch today! Join us?", [Platform.LINKEDIN])

        assert report.engine == "heuristic"
        assert report.analysis.platform_rewrites.linkedin
        assert report.analysis.platform_rewrites.twitter == ""

    async def test_text_too_long(self, make_runtime):
        runtime = make_runtime(max_analysis_chars=10)

        with pytest.raises(TextTooLongError):
            await runtime.service.analyze("x" * 11)
        with pytest.raises(TextTooLongError):
            await runtime.service.hashtags("x" * 11)
