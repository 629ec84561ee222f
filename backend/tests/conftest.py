"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : make_settings, dispatcher, make_pdf_reader, make_ocr_engine,
                    make_runtime, runtime, make_client, client, fake_clock

Environment strategy:
  - Every store runs in memory (STORE_BACKEND=memory); no Redis needed.
  - No AI provider key is configured, so the heuristic paths run unless a
    test injects a mocked LLMClient explicitly.
  - Celery is never contacted: RecordingDispatcher stands in for the broker
    and tests drive `runtime.runner.run(job_id)` themselves.
  - PDF rendering and OCR are replaced by in-process fakes.

How to run:
  pytest                                   # all tests
  pytest -m unit                           # unit tests only
  pytest -m integration                    # HTTP-level tests
  pytest backend/tests/unit/test_pii.py    # single file
"""

from __future__ import annotations

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any lumio imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("STORE_BACKEND",         "memory")
os.environ.setdefault("CELERY_BROKER_URL",     "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("APP_ENV",               "development")
os.environ["OPENAI_API_KEY"]    = ""
os.environ["LANGSMITH_API_KEY"] = ""

from lumio.core.config import Settings  # noqa: E402
from lumio.core.exceptions import ExtractionError  # noqa: E402
from lumio.processing.ocr import ENGINE_LOCAL_OCR, BaseOCREngine, OCRResult  # noqa: E402
from lumio.processing.pdf import PdfTextLayer, RenderedPages  # noqa: E402
from lumio.runtime import Runtime  # noqa: E402


# ─────────────────────────────────────────────────────────────────────────────
# Sample file bytes
# ─────────────────────────────────────────────────────────────────────────────

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64
PDF_BYTES = (
    b"%PDF-1.4\n"
    b"1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>\nendobj\n"
    b"trailer\n<< /Root 1 0 R >>\n%%EOF"
)


@pytest.fixture
def png_bytes() -> bytes:
    """Minimal PNG — passes magic-byte detection."""
    return PNG_BYTES


@pytest.fixture
def jpeg_bytes() -> bytes:
    return JPEG_BYTES


@pytest.fixture
def pdf_bytes() -> bytes:
    """Minimal PDF — passes magic-byte detection (%PDF header)."""
    return PDF_BYTES


# ─────────────────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────────────────

class FakeClock:
    """Manually advanced clock for TTL, lease and backoff tests."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingDispatcher:
    """Records publishes and revokes instead of talking to a broker."""

    def __init__(self) -> None:
        self.dispatched: list[tuple[str, float]] = []
        self.cancelled:  list[str] = []
        self.fail = False

    def dispatch(self, job_id: str, delay_seconds: float = 0.0) -> None:
        if self.fail:
            raise ConnectionError("broker unreachable")
        self.dispatched.append((job_id, delay_seconds))

    def cancel(self, job_id: str) -> None:
        self.cancelled.append(job_id)

    @property
    def job_ids(self) -> list[str]:
        return [job_id for job_id, _ in self.dispatched]


class FakePdfReader:
    """Stands in for PyMuPDFReader; `images` overrides the rendered pages."""

    def __init__(
        self,
        text:        str = "",
        total_pages: int = 1,
        images:      list[bytes | None] | None = None,
    ) -> None:
        self.text        = text
        self.total_pages = total_pages
        self.images      = images
        self.render_calls = 0

    async def read_text_layer(self, pdf_bytes: bytes) -> PdfTextLayer:
        return PdfTextLayer(text=self.text, total_pages=self.total_pages)

    async def render_pages(self, pdf_bytes: bytes, max_pages: int, scale: float = 2.0) -> RenderedPages:
        self.render_calls += 1
        images = self.images
        if images is None:
            images = [b"page-image"] * min(self.total_pages, max_pages)
        return RenderedPages(images=list(images[:max_pages]), total_pages=self.total_pages)


class FakeOCREngine(BaseOCREngine):
    """Returns fixed text, or raises when `fail` is set."""

    def __init__(
        self,
        name:       str = ENGINE_LOCAL_OCR,
        text:       str = "Recognised page text",
        confidence: float = 0.9,
        fail:       bool = False,
    ) -> None:
        self._name      = name
        self.text       = text
        self.confidence = confidence
        self.fail       = fail
        self.calls      = 0

    @property
    def engine_name(self) -> str:
        return self._name

    async def recognize(self, image_bytes: bytes, mime_type: str = "image/png") -> OCRResult:
        self.calls += 1
        if self.fail:
            raise ExtractionError(f"{self._name} cannot read this page")
        return OCRResult(
            text=self.text,
            lines=[line for line in self.text.split("\n") if line.strip()],
            confidence=self.confidence,
            engine=self._name,
        )


# ─────────────────────────────────────────────────────────────────────────────
# Settings & runtime
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def make_pdf_reader():
    return FakePdfReader


@pytest.fixture
def make_ocr_engine():
    return FakeOCREngine


@pytest.fixture
def make_settings(tmp_path):
    """
    Factory fixture: Settings for an in-memory runtime.

    Usage:
        settings = make_settings(job_max_attempts=1)
    """
    def _build(**overrides) -> Settings:
        values = {
            "store_backend":            "memory",
            "openai_api_key":           "",
            "upload_dir":               str(tmp_path / "uploads"),
            "job_backoff_base_seconds": 0.0,
            "job_max_attempts":         3,
        }
        values.update(overrides)
        return Settings(**values)

    return _build


@pytest.fixture
def make_runtime(make_settings, dispatcher):
    """
    Factory fixture: a fully wired in-memory Runtime.

    Usage:
        runtime = make_runtime()
        runtime = make_runtime(ocr_engines=[FakeOCREngine(fail=True)], job_max_attempts=1)
    """
    def _build(
        ocr_engines: list[BaseOCREngine] | None = None,
        pdf_reader:  FakePdfReader | None = None,
        llm=None,
        **overrides,
    ) -> Runtime:
        return Runtime.build(
            make_settings(**overrides),
            dispatcher=dispatcher,
            llm=llm,
            ocr_engines=ocr_engines if ocr_engines is not None else [FakeOCREngine()],
            pdf_reader=pdf_reader or FakePdfReader(),
        )

    return _build


@pytest.fixture
def runtime(make_runtime) -> Runtime:
    return make_runtime()


# ─────────────────────────────────────────────────────────────────────────────
# HTTP client
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_client():
    """
    Factory fixture: an httpx AsyncClient bound to the app for `runtime`.

    Usage:
        async with make_client(runtime) as ac:
            resp = await ac.get("/health")
    """
    from lumio.main import create_app

    def _build(runtime: Runtime) -> AsyncClient:
        app = create_app(runtime=runtime)
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return _build


@pytest_asyncio.fixture
async def client(runtime, make_client) -> AsyncGenerator[AsyncClient, None]:
    async with make_client(runtime) as ac:
        yield ac
