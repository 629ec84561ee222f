"""
Processing Package — document bytes → plain text

  TextExtractorOrchestrator   text-layer → rasterize → OCR cascade
  FallbackOCR                 AI vision OCR, then local Tesseract
  PyMuPDFReader               PDF text layer + page rendering
"""

from lumio.processing.extractor import (
    ENGINE_TEXT_LAYER,
    PDF_MIME_TYPE,
    ExtractionResult,
    TextExtractorOrchestrator,
)
from lumio.processing.ocr import (
    ENGINE_AI_OCR,
    ENGINE_LOCAL_OCR,
    BaseOCREngine,
    FallbackOCR,
    OCRResult,
    TesseractOCR,
    VisionLLMOCR,
)
from lumio.processing.pdf import PdfTextLayer, PyMuPDFReader, RenderedPages

__all__ = [
    "BaseOCREngine",
    "ENGINE_AI_OCR",
    "ENGINE_LOCAL_OCR",
    "ENGINE_TEXT_LAYER",
    "ExtractionResult",
    "FallbackOCR",
    "OCRResult",
    "PDF_MIME_TYPE",
    "PdfTextLayer",
    "PyMuPDFReader",
    "RenderedPages",
    "TesseractOCR",
    "TextExtractorOrchestrator",
    "VisionLLMOCR",
]
