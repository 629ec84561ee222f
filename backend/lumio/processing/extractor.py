"""
Text Extraction Orchestrator
════════════════════════════

Strategy selection flow:
  1.  PDF → PyMuPDF text layer. More than `min_text_chars` characters means
      the layer is authoritative: engine = "text-layer", done.
  2.  Otherwise rasterize the first `max_pages` pages (PDF) or take the
      uploaded image as the single page.
  3.  Run FallbackOCR on each page, sequentially. A page whose OCR fails is
      logged and skipped; processing continues with the next page.
  4.  Join page texts with a blank line.

An optional `heartbeat(pages_done, pages_planned)` coroutine is awaited after
every page so that a long OCR run keeps its job lease alive. Whatever it
raises aborts the extraction.

Engine label for OCR runs: "ai-ocr" when every processed page was read by the
vision model, "local-ocr" as soon as one page needed the local fallback.

This module is the only place that knows about the cascade. The job runner
only sees ExtractionResult.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from lumio.core.exceptions import ExtractionError
from lumio.observability.tracing import traced
from lumio.processing.ocr import ENGINE_AI_OCR, ENGINE_LOCAL_OCR, FallbackOCR, OCRResult
from lumio.processing.pdf import PyMuPDFReader

logger = logging.getLogger(__name__)

PDF_MIME_TYPE     = "application/pdf"
ENGINE_TEXT_LAYER = "text-layer"

Heartbeat = Callable[[int, int], Awaitable[None]]


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------

@dataclass
class ExtractionResult:
    """
    text            : extracted plain text, pages separated by a blank line
    engine          : "text-layer" | "ai-ocr" | "local-ocr"
    pages_total     : pages in the source document (1 for an image)
    pages_processed : pages that produced an OCR result (or all, for text-layer)
    avg_confidence  : mean OCR confidence (0–1; -1 if N/A)
    elapsed_ms      : extraction wall time
    """
    text:            str
    engine:          str
    pages_total:     int
    pages_processed: int
    avg_confidence:  float = -1.0
    elapsed_ms:      float = 0.0

    def __post_init__(self) -> None:
        if not 0 <= self.pages_processed <= self.pages_total:
            raise ValueError(
                f"pages_processed={self.pages_processed} outside 0..{self.pages_total}"
            )

    @property
    def partial(self) -> bool:
        return self.pages_processed < self.pages_total


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class TextExtractorOrchestrator:
    """
    Stateless orchestrator; safe to share between concurrent jobs.

    Usage:
        orchestrator = TextExtractorOrchestrator(PyMuPDFReader(), FallbackOCR([...]))
        result = await orchestrator.extract(file_bytes, "application/pdf", heartbeat=on_page)
    """

    def __init__(
        self,
        pdf_reader:     PyMuPDFReader,
        ocr:            FallbackOCR,
        max_pages:      int = 10,
        render_scale:   float = 2.0,
        min_text_chars: int = 50,
    ) -> None:
        self._pdf            = pdf_reader
        self._ocr            = ocr
        self._max_pages      = max_pages
        self._render_scale   = render_scale
        self._min_text_chars = min_text_chars

    @traced("extraction")
    async def extract(
        self,
        data:      bytes,
        mime_type: str,
        heartbeat: Heartbeat | None = None,
    ) -> ExtractionResult:
        t0 = time.monotonic()

        if mime_type == PDF_MIME_TYPE:
            result = await self._extract_pdf(data, heartbeat)
        else:
            result = await self._ocr_pages([data], 1, mime_type, heartbeat)

        result.elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "Extraction | engine=%s pages=%d/%d partial=%s chars=%d elapsed_ms=%.0f",
            result.engine, result.pages_processed, result.pages_total,
            result.partial, len(result.text), result.elapsed_ms,
        )
        return result

    async def _extract_pdf(self, data: bytes, heartbeat: Heartbeat | None) -> ExtractionResult:
        layer = await self._pdf.read_text_layer(data)

        if len(layer.text.strip()) > self._min_text_chars:
            return ExtractionResult(
                text=layer.text,
                engine=ENGINE_TEXT_LAYER,
                pages_total=layer.total_pages,
                pages_processed=layer.total_pages,
            )

        logger.info(
            "PDF has no usable text layer, rendering for OCR | pages=%d cap=%d",
            layer.total_pages, self._max_pages,
        )
        rendered = await self._pdf.render_pages(data, self._max_pages, self._render_scale)
        return await self._ocr_pages(rendered.images, rendered.total_pages, "image/png", heartbeat)

    async def _ocr_pages(
        self,
        images:      list[bytes | None],
        total_pages: int,
        mime_type:   str,
        heartbeat:   Heartbeat | None = None,
    ) -> ExtractionResult:
        results: list[OCRResult] = []

        for page_number, image in enumerate(images, start=1):
            if image is None:
                continue
            try:
                results.append(await self._ocr.recognize(image, mime_type))
            except ExtractionError as exc:
                logger.warning("Page OCR failed, skipping | page=%d error=%s", page_number, exc)
            if heartbeat is not None:
                await heartbeat(page_number, len(images))

        if not results:
            raise ExtractionError(
                f"No page could be processed ({len(images)} attempted of {total_pages})"
            )

        engine = (
            ENGINE_LOCAL_OCR
            if any(r.engine == ENGINE_LOCAL_OCR for r in results)
            else ENGINE_AI_OCR
        )
        texts = [r.text.strip() for r in results if r.text.strip()]

        return ExtractionResult(
            text="\n\n".join(texts),
            engine=engine,
            pages_total=total_pages,
            pages_processed=len(results),
            avg_confidence=round(sum(r.confidence for r in results) / len(results), 3),
        )
