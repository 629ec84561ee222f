"""
OCR Strategy Pattern — page image → text
════════════════════════════════════════

Strategies, tried in order by FallbackOCR:

  Strategy 1: VisionLLMOCR
    - Sends the page as an inline image with a strict-JSON prompt
      ({text, lines, confidence})
    - Wrapped in a bounded retry (default 2 attempts) for transient
      provider errors; unparsable output counts as transient
    - Only registered when an AI provider key is configured

  Strategy 2: TesseractOCR
    - Local, zero API calls
    - Pillow preprocessing first; if the standard variant yields no text the
      binarized variant is tried once
    - Tesseract confidence (0–100) is reported on a 0–1 scale

Every strategy raises on failure; FallbackOCR turns an exhausted chain into
ExtractionError so the caller can skip the page.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from lumio.core.exceptions import ExtractionError, ProviderResponseError
from lumio.llm.client import LLMClient
from lumio.llm.prompts import OCR_PROMPT
from lumio.llm.retry import with_retry
from lumio.processing.preprocess import (
    VISION_SAFE_MIME_TYPES,
    preprocess_image,
    preprocess_image_advanced,
    to_png,
)

logger = logging.getLogger(__name__)

ENGINE_AI_OCR    = "ai-ocr"
ENGINE_LOCAL_OCR = "local-ocr"


# ---------------------------------------------------------------------------
# Shared data types
# ---------------------------------------------------------------------------

@dataclass
class OCRResult:
    """
    text        : recognised text (may be empty for a blank page)
    lines       : non-empty lines of `text`
    confidence  : 0.0–1.0
    engine      : "ai-ocr" | "local-ocr"
    """
    text:       str
    lines:      list[str] = field(default_factory=list)
    confidence: float = 0.0
    engine:     str = ENGINE_LOCAL_OCR


def _split_lines(text: str) -> list[str]:
    return [line for line in text.split("\n") if line.strip()]


def _clamp_confidence(value: object) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return 0.0


# ---------------------------------------------------------------------------
# Abstract strategy
# ---------------------------------------------------------------------------

class BaseOCREngine(ABC):

    @property
    @abstractmethod
    def engine_name(self) -> str:
        """Label recorded in ExtractionResult.engine."""

    @abstractmethod
    async def recognize(self, image_bytes: bytes, mime_type: str = "image/png") -> OCRResult:
        """Return the text of one page image; raise on failure."""


# ---------------------------------------------------------------------------
# Strategy 1: AI vision OCR
# ---------------------------------------------------------------------------

class VisionLLMOCR(BaseOCREngine):

    def __init__(self, llm: LLMClient, attempts: int = 2, base_delay: float = 1.0) -> None:
        self._llm        = llm
        self._attempts   = attempts
        self._base_delay = base_delay

    @property
    def engine_name(self) -> str:
        return ENGINE_AI_OCR

    async def recognize(self, image_bytes: bytes, mime_type: str = "image/png") -> OCRResult:
        if mime_type not in VISION_SAFE_MIME_TYPES:
            image_bytes, mime_type = to_png(image_bytes), "image/png"

        async def _call() -> OCRResult:
            payload = await self._llm.complete_json_with_image(OCR_PROMPT, image_bytes, mime_type)
            text = payload.get("text")
            if not isinstance(text, str):
                raise ProviderResponseError("OCR response is missing a string 'text' field")
            lines = payload.get("lines")
            if not isinstance(lines, list):
                lines = _split_lines(text)
            return OCRResult(
                text=text,
                lines=[str(line) for line in lines],
                confidence=_clamp_confidence(payload.get("confidence", 0.0)),
                engine=self.engine_name,
            )

        t0 = time.perf_counter()
        result = await with_retry(
            _call, attempts=self._attempts, base_delay=self._base_delay, label="ai-ocr",
        )
        logger.info(
            "AI OCR completed | chars=%d confidence=%.2f elapsed_ms=%.0f",
            len(result.text), result.confidence, (time.perf_counter() - t0) * 1000,
        )
        return result


# ---------------------------------------------------------------------------
# Strategy 2: Tesseract
# ---------------------------------------------------------------------------

class TesseractOCR(BaseOCREngine):
    """
    Local OCR through pytesseract. Requires the tesseract binary in the
    container image.
    """

    def __init__(self, lang: str = "eng", timeout_seconds: float = 120.0) -> None:
        self._lang    = lang
        self._timeout = timeout_seconds

    @property
    def engine_name(self) -> str:
        return ENGINE_LOCAL_OCR

    async def recognize(self, image_bytes: bytes, mime_type: str = "image/png") -> OCRResult:
        loop = asyncio.get_running_loop()
        t0   = time.perf_counter()

        try:
            result = await asyncio.wait_for(
                loop.run_in_executor(None, self._recognize_sync, image_bytes),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ExtractionError(f"Local OCR timed out after {self._timeout}s") from exc

        logger.info(
            "Local OCR completed | chars=%d confidence=%.2f elapsed_ms=%.0f",
            len(result.text), result.confidence, (time.perf_counter() - t0) * 1000,
        )
        return result

    def _recognize_sync(self, image_bytes: bytes) -> OCRResult:
        result = self._run_tesseract(preprocess_image(image_bytes))
        if not result.text.strip():
            logger.debug("Local OCR found no text, retrying with binarized image")
            result = self._run_tesseract(preprocess_image_advanced(image_bytes))
        return result

    def _run_tesseract(self, png_bytes: bytes) -> OCRResult:
        import io

        import pytesseract
        from PIL import Image

        with Image.open(io.BytesIO(png_bytes)) as image:
            data = pytesseract.image_to_data(
                image, lang=self._lang, output_type=pytesseract.Output.DICT,
            )
            text = pytesseract.image_to_string(image, lang=self._lang)

        # conf is -1 for non-word boxes
        word_conf = [float(c) for c in data.get("conf", []) if float(c) >= 0]
        confidence = sum(word_conf) / len(word_conf) / 100 if word_conf else 0.0

        return OCRResult(
            text=text,
            lines=_split_lines(text),
            confidence=round(_clamp_confidence(confidence), 3),
            engine=self.engine_name,
        )


# ---------------------------------------------------------------------------
# Fallback driver
# ---------------------------------------------------------------------------

class FallbackOCR:
    """Try each engine in order; the first success wins."""

    def __init__(self, engines: list[BaseOCREngine]) -> None:
        if not engines:
            raise ValueError("FallbackOCR needs at least one engine")
        self._engines = engines

    @property
    def engines(self) -> list[BaseOCREngine]:
        return list(self._engines)

    async def recognize(self, image_bytes: bytes, mime_type: str = "image/png") -> OCRResult:
        errors: list[str] = []
        for engine in self._engines:
            try:
                return await engine.recognize(image_bytes, mime_type)
            except Exception as exc:
                errors.append(f"{engine.engine_name}: {exc}")
                logger.warning(
                    "OCR engine failed, falling back | engine=%s error=%s",
                    engine.engine_name, exc,
                )
        raise ExtractionError("All OCR engines failed (" + "; ".join(errors) + ")")
