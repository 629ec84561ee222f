"""
PDF access via PyMuPDF (fitz).

Two operations, both blocking and therefore run in the default thread
executor so they never stall the worker's event loop:

  read_text_layer()  native text layer of every page
  render_pages()     rasterize the first N pages to PNG for OCR

fitz.open() returns an independent document object per call, so a single
reader is safe for concurrent use.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from lumio.core.exceptions import ExtractionError

logger = logging.getLogger(__name__)


@dataclass
class PdfTextLayer:
    text:        str
    total_pages: int


@dataclass
class RenderedPages:
    """
    images      : one entry per attempted page; None where rendering failed
    total_pages : page count of the whole document (not only the rendered prefix)
    """
    images:      list[bytes | None] = field(default_factory=list)
    total_pages: int = 0


class PyMuPDFReader:

    async def read_text_layer(self, pdf_bytes: bytes) -> PdfTextLayer:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read_text_layer_sync, pdf_bytes)

    async def render_pages(
        self,
        pdf_bytes: bytes,
        max_pages: int,
        scale:     float = 2.0,
    ) -> RenderedPages:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self._render_pages_sync, pdf_bytes, max_pages, scale
        )

    # ------------------------------------------------------------------
    # Blocking implementations
    # ------------------------------------------------------------------

    @staticmethod
    def _open(pdf_bytes: bytes):
        import fitz   # PyMuPDF

        try:
            return fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as exc:
            raise ExtractionError(f"Unreadable PDF: {exc}") from exc

    def _read_text_layer_sync(self, pdf_bytes: bytes) -> PdfTextLayer:
        with self._open(pdf_bytes) as doc:
            texts = [(page.get_text("text") or "").strip() for page in doc]
            return PdfTextLayer(
                text="\n\n".join(t for t in texts if t),
                total_pages=doc.page_count,
            )

    def _render_pages_sync(
        self,
        pdf_bytes: bytes,
        max_pages: int,
        scale:     float,
    ) -> RenderedPages:
        import fitz

        with self._open(pdf_bytes) as doc:
            total  = doc.page_count
            limit  = min(total, max_pages)
            matrix = fitz.Matrix(scale, scale)
            images: list[bytes | None] = []

            for index in range(limit):
                try:
                    pixmap = doc[index].get_pixmap(matrix=matrix)
                    images.append(pixmap.tobytes("png"))
                except Exception as exc:
                    logger.warning("PDF page render failed | page=%d error=%s", index + 1, exc)
                    images.append(None)

        logger.info(
            "PDF rendered | total_pages=%d rendered=%d scale=%.1f",
            total, sum(1 for i in images if i is not None), scale,
        )
        return RenderedPages(images=images, total_pages=total)
