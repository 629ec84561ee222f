"""FastAPI dependencies: resolve collaborators from the app's Runtime."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from lumio.runtime import Runtime
from lumio.services.jobs import JobService


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def get_job_service(runtime: Annotated[Runtime, Depends(get_runtime)]) -> JobService:
    return runtime.service


JobServiceDep = Annotated[JobService, Depends(get_job_service)]
