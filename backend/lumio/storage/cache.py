"""
Analysis cache — content fingerprint → AnalysisReport (or hashtag list).

The stored report is the unfiltered analysis of all platforms plus the label
of the engine that produced it; callers filter targets after a hit.

Best effort: any backend error is logged and treated as a miss (get) or
ignored (set). A cache outage slows the pipeline down, it never fails a job.
"""

from __future__ import annotations

import hashlib
import logging
import re
import unicodedata

from pydantic import ValidationError

from lumio.schemas.analysis import AnalysisReport, HashtagReport
from lumio.storage.backends import KeyValueBackend

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

ANALYSIS_NAMESPACE = "analysis"
HASHTAG_NAMESPACE  = "hashtags"


def normalize_text(text: str) -> str:
    return _WHITESPACE.sub(" ", unicodedata.normalize("NFC", text)).strip()


def fingerprint(text: str) -> str:
    """SHA-256 hex digest of the normalized text."""
    return hashlib.sha256(normalize_text(text).encode("utf-8")).hexdigest()


class AnalysisCache:

    def __init__(
        self,
        backend:             KeyValueBackend,
        ttl_seconds:         int = 24 * 60 * 60,
        hashtag_ttl_seconds: int = 60 * 60,
    ) -> None:
        self._backend     = backend
        self._ttl         = ttl_seconds
        self._hashtag_ttl = hashtag_ttl_seconds

    @staticmethod
    def _key(namespace: str, digest: str) -> str:
        return f"cache:{namespace}:{digest}"

    # ------------------------------------------------------------------
    # Full analysis
    # ------------------------------------------------------------------

    async def get(self, digest: str) -> AnalysisReport | None:
        raw = await self._safe_get(self._key(ANALYSIS_NAMESPACE, digest))
        if raw is None:
            return None
        try:
            return AnalysisReport.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Cache entry invalid, ignoring | key=%s error=%s", digest[:12], exc)
            return None

    async def set(self, digest: str, report: AnalysisReport) -> None:
        await self._safe_set(
            self._key(ANALYSIS_NAMESPACE, digest),
            report.model_copy(update={"cached": False}).model_dump_json(),
            self._ttl,
        )

    # ------------------------------------------------------------------
    # Hashtag-only
    # ------------------------------------------------------------------

    async def get_hashtags(self, digest: str) -> HashtagReport | None:
        raw = await self._safe_get(self._key(HASHTAG_NAMESPACE, digest))
        if raw is None:
            return None
        try:
            return HashtagReport.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Hashtag cache entry invalid | key=%s error=%s", digest[:12], exc)
            return None

    async def set_hashtags(self, digest: str, report: HashtagReport) -> None:
        await self._safe_set(
            self._key(HASHTAG_NAMESPACE, digest),
            report.model_copy(update={"cached": False}).model_dump_json(),
            self._hashtag_ttl,
        )

    # ------------------------------------------------------------------
    # Error isolation
    # ------------------------------------------------------------------

    async def _safe_get(self, key: str) -> str | None:
        try:
            return await self._backend.get(key)
        except Exception as exc:
            logger.warning("Cache get failed, treating as miss | key=%s error=%s", key, exc)
            return None

    async def _safe_set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self._backend.set(key, value, ttl)
        except Exception as exc:
            logger.warning("Cache set failed, continuing | key=%s error=%s", key, exc)
