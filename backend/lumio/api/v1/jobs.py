"""
Document Jobs API Router

  POST   /api/v1/jobs                 submit a file → 202 {job_id, status}
  GET    /api/v1/jobs/queue/stats     queue depth and state counts
  GET    /api/v1/jobs/{id}/status     polling snapshot
  GET    /api/v1/jobs/{id}/result     202 not ready · 404 not found/expired · 409 failed
  DELETE /api/v1/jobs/{id}            204, idempotent

Errors raised by JobService are mapped to ErrorResponse bodies by the
exception handlers registered in lumio.main.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, File, Form, Response, UploadFile, status

from lumio.api.deps import JobServiceDep
from lumio.core.exceptions import FileTooLargeError
from lumio.schemas.errors import ErrorResponse
from lumio.schemas.jobs import JobResult, JobStatusSnapshot, QueueStats, SubmitResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/jobs",
    tags=["Document Jobs"],
)

_READ_CHUNK_BYTES = 1024 * 1024


@router.post(
    "",
    response_model=SubmitResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit a document for processing",
    description=(
        "Accepts PDF, JPEG, PNG, TIFF, BMP or WEBP up to the configured size limit. "
        "Returns 202 immediately; poll GET /jobs/{job_id}/status for progress."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Empty file or unsupported/mismatched type"},
        413: {"model": ErrorResponse, "description": "File exceeds the size limit"},
    },
)
async def submit_job(
    service:  JobServiceDep,
    file:     UploadFile = File(..., description="Document file"),
    owner_id: Optional[str] = Form(None, max_length=128),
) -> SubmitResponse:
    limit = service.max_file_bytes
    data = bytearray()
    # stop reading as soon as the limit is crossed
    while chunk := await file.read(_READ_CHUNK_BYTES):
        data.extend(chunk)
        if len(data) > limit:
            raise FileTooLargeError(len(data), limit)

    return await service.submit(bytes(data), file.content_type, file.filename, owner_id)


@router.get(
    "/queue/stats",
    response_model=QueueStats,
    summary="Queue depth and job counts per state",
)
async def queue_stats(service: JobServiceDep) -> QueueStats:
    return await service.stats()


@router.get(
    "/{job_id}/status",
    response_model=JobStatusSnapshot,
    summary="Poll job status",
    responses={404: {"model": ErrorResponse, "description": "Unknown or expired job"}},
)
async def job_status(job_id: str, service: JobServiceDep) -> JobStatusSnapshot:
    return await service.get_status(job_id)


@router.get(
    "/{job_id}/result",
    response_model=JobResult,
    summary="Fetch the result of a succeeded job",
    responses={
        202: {"model": ErrorResponse, "description": "Job is still queued or processing"},
        404: {"model": ErrorResponse, "description": "Unknown, deleted or expired job"},
        409: {"model": ErrorResponse, "description": "Job failed; message holds the reason"},
    },
)
async def job_result(job_id: str, service: JobServiceDep) -> JobResult:
    return await service.get_result(job_id)


@router.delete(
    "/{job_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a job and its result (idempotent)",
)
async def delete_job(job_id: str, service: JobServiceDep) -> Response:
    await service.delete(job_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
