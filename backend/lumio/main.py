"""
FastAPI Application — Entry Point

Document analysis API: submit files for asynchronous extraction and content
analysis, poll their status, fetch results, or analyze text directly.

Architecture:
  - All routes are versioned under /api/v1/
  - Every long-lived collaborator lives on one Runtime (app.state.runtime),
    built in the lifespan unless the caller passes one in (tests)
  - Work is handed to Celery workers; the API never runs a pipeline inline
    unless CELERY_ALWAYS_EAGER is set
  - Structured JSON error responses (ErrorResponse) on all 4xx/5xx

Middleware stack (innermost → outermost):
  1. CORS: restrict to configured origins
  2. Request ID injection: X-Request-ID header on every response
  3. Gzip: compress responses > 1 KB
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from lumio import __version__
from lumio.api.v1.analyze import router as analyze_router
from lumio.api.v1.jobs import router as jobs_router
from lumio.core.config import Settings, settings as default_settings
from lumio.core.exceptions import (
    FileTooLargeError,
    JobFailedError,
    JobNotFoundError,
    JobNotReadyError,
    TextTooLongError,
    UploadRejectedError,
)
from lumio.observability.tracing import TracingConfig, configure_logging
from lumio.runtime import Runtime
from lumio.schemas.errors import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


def _error_response(
    request:     Request,
    status_code: int,
    error_code:  str,
    message:     str,
    details:     list[ErrorDetail] | None = None,
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")
    body = ErrorResponse(
        error_code=error_code,
        message=message,
        details=details or [],
        request_id=request_id,
    )
    headers = {"X-Request-ID": request_id} if request_id else None
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(runtime: Runtime | None = None, settings: Settings | None = None) -> FastAPI:
    settings = settings or (runtime.settings if runtime is not None else default_settings)
    owns_runtime = runtime is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Run on startup: build the Runtime, enable tracing.
        Run on shutdown: close store connections (only if we built them).
        """
        TracingConfig.init(settings)
        rt = runtime or Runtime.build(settings)
        app.state.runtime = rt

        if settings.celery_always_eager:
            # eager tasks run in this process and must see the same stores
            from lumio.workers import tasks
            tasks.set_runtime(rt)

        logger.info(
            "Starting Lumio API | env=%s store=%s ai=%s eager=%s",
            settings.app_env, settings.store_backend, settings.ai_enabled,
            settings.celery_always_eager,
        )

        yield

        logger.info("Shutting down Lumio API")
        if owns_runtime:
            await rt.close()

    app = FastAPI(
        title="Lumio Document Analysis API",
        description=(
            "Asynchronous document text extraction (PDF text layer, AI and local OCR) "
            "and social-media content analysis with caching and PII redaction."
        ),
        version=__version__,
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )
    if runtime is not None:
        app.state.runtime = runtime

    # ----------------------------------------------------------------
    # Middleware (applied in reverse order: last added = outermost)
    # ----------------------------------------------------------------

    app.add_middleware(GZipMiddleware, minimum_size=1024)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if not settings.is_production else [],
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "HTTP %s %s %d %.1fms | request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )
        return response

    # ----------------------------------------------------------------
    # Exception handlers: uniform structured error responses
    # ----------------------------------------------------------------

    @app.exception_handler(UploadRejectedError)
    async def upload_rejected_handler(request: Request, exc: UploadRejectedError):
        code = (
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
            if isinstance(exc, FileTooLargeError)
            else status.HTTP_400_BAD_REQUEST
        )
        return _error_response(request, code, exc.error_code, str(exc))

    @app.exception_handler(TextTooLongError)
    async def text_too_long_handler(request: Request, exc: TextTooLongError):
        return _error_response(
            request, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, exc.error_code, str(exc),
        )

    @app.exception_handler(JobNotFoundError)
    async def job_not_found_handler(request: Request, exc: JobNotFoundError):
        return _error_response(request, status.HTTP_404_NOT_FOUND, "JOB_NOT_FOUND", str(exc))

    @app.exception_handler(JobNotReadyError)
    async def job_not_ready_handler(request: Request, exc: JobNotReadyError):
        return _error_response(
            request,
            status.HTTP_202_ACCEPTED,
            "JOB_NOT_READY",
            str(exc),
            details=[ErrorDetail(field="percent", message=str(exc.percent), code="PROGRESS")],
        )

    @app.exception_handler(JobFailedError)
    async def job_failed_handler(request: Request, exc: JobFailedError):
        return _error_response(
            request, status.HTTP_409_CONFLICT, "JOB_FAILED", exc.reason or "Job failed",
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Convert Pydantic/FastAPI validation errors to structured ErrorResponse."""
        details = [
            ErrorDetail(
                field=" → ".join(str(loc) for loc in err["loc"]),
                message=err["msg"],
                code="VALIDATION_ERROR",
            )
            for err in exc.errors()
        ]
        return _error_response(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "VALIDATION_ERROR",
            "Request validation failed.",
            details=details,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions — never expose stack traces."""
        logger.exception(
            "Unhandled exception | path=%s request_id=%s",
            request.url.path, getattr(request.state, "request_id", None),
        )
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "An unexpected error occurred.",
        )

    # ----------------------------------------------------------------
    # Routers
    # ----------------------------------------------------------------

    app.include_router(jobs_router,    prefix="/api/v1")
    app.include_router(analyze_router, prefix="/api/v1")

    # ----------------------------------------------------------------
    # Health & readiness endpoints (used by load balancer)
    # ----------------------------------------------------------------

    @app.get(
        "/health",
        tags=["Operations"],
        summary="Liveness check",
        description="Returns 200 if the process is alive. No external checks.",
    )
    async def health() -> dict:
        return {"status": "ok", "service": "lumio-api"}

    @app.get(
        "/ready",
        tags=["Operations"],
        summary="Readiness check",
        description="Returns 200 only if the job ledger and key-value store are reachable.",
    )
    async def readiness(request: Request) -> JSONResponse:
        rt: Runtime | None = getattr(request.app.state, "runtime", None)
        healthy = rt is not None and await rt.ping()
        if not healthy:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "not_ready"},
            )
        return JSONResponse(status_code=status.HTTP_200_OK, content={"status": "ready"})

    return app


# ---------------------------------------------------------------------------
# Application instance (imported by uvicorn)
# ---------------------------------------------------------------------------

configure_logging(default_settings)
app = create_app()


# ---------------------------------------------------------------------------
# Local development entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "lumio.main:app",
        host="0.0.0.0",
        port=8000,
        reload=default_settings.app_env == "development",
        log_level="debug" if default_settings.debug else "info",
        access_log=True,
    )
