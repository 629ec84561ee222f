"""
Content Analysis Engine
═══════════════════════

  text ──► fingerprint ──► cache hit? ──YES──► filter targets ──► report
                               │
                               NO
                               ▼
              AIAnalyzer (bounded retry, strict JSON, back-filled defaults)
                               │ ProviderError after the retry budget
                               ▼
              HeuristicAnalyzer (never fails, always complete)
                               │
                               ▼
                  cache.set(unfiltered) ──► filter targets ──► report

The cache always holds the analysis for all platforms so that two callers
asking for different targets share one entry. Concurrent misses on the same
fingerprint may both compute; the last writer wins and both results are
valid.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Iterable

from lumio.analysis import heuristics
from lumio.core.exceptions import ProviderError
from lumio.llm.client import LLMClient
from lumio.llm.prompts import ANALYSIS_PROMPT, HASHTAG_PROMPT, render
from lumio.llm.retry import with_retry
from lumio.observability.tracing import traced
from lumio.schemas.analysis import (
    ALL_PLATFORMS,
    MAX_EMOJIS,
    MAX_HASHTAGS,
    AnalysisReport,
    AnalysisResult,
    Hashtag,
    HashtagReport,
    HashtagSuggestion,
    Platform,
    PlatformRewrites,
    Sentiment,
)
from lumio.storage.cache import AnalysisCache, fingerprint

logger = logging.getLogger(__name__)

_SENTIMENT_LABELS = {"positive", "neutral", "negative"}


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

class BaseAnalyzer(ABC):

    @property
    @abstractmethod
    def engine_name(self) -> str: ...

    @abstractmethod
    async def analyze(self, text: str) -> AnalysisResult: ...


class HeuristicAnalyzer(BaseAnalyzer):

    @property
    def engine_name(self) -> str:
        return "heuristic"

    async def analyze(self, text: str) -> AnalysisResult:
        return heuristics.basic_analysis(text)


class AIAnalyzer(BaseAnalyzer):
    """
    One LLM call per attempt, retried on transient errors (including
    unparsable JSON). Whatever the model leaves out is back-filled locally;
    word count and engagement score are always computed locally.
    """

    def __init__(
        self,
        llm:        LLMClient,
        attempts:   int = 3,
        base_delay: float = 1.0,
        max_chars:  int = 50_000,
    ) -> None:
        self._llm        = llm
        self._attempts   = attempts
        self._base_delay = base_delay
        self._max_chars  = max_chars

    @property
    def engine_name(self) -> str:
        return "ai"

    async def analyze(self, text: str) -> AnalysisResult:
        prompt = render(ANALYSIS_PROMPT, text[: self._max_chars])
        payload = await with_retry(
            lambda: self._llm.complete_json(prompt),
            attempts=self._attempts,
            base_delay=self._base_delay,
            label="ai-analysis",
        )
        return coerce_analysis(payload, text)

    async def hashtags(self, text: str, attempts: int = 2) -> list[HashtagSuggestion]:
        prompt = render(HASHTAG_PROMPT, text[: self._max_chars])
        payload = await with_retry(
            lambda: self._llm.complete_json(prompt),
            attempts=attempts,
            base_delay=self._base_delay,
            label="ai-hashtags",
        )
        suggestions = []
        for item in _as_list(payload.get("hashtags")):
            if isinstance(item, dict) and _clean_tag(item.get("tag")):
                suggestions.append(HashtagSuggestion(
                    tag=_clean_tag(item.get("tag")),
                    rationale=str(item.get("rationale") or ""),
                ))
        return suggestions[:MAX_HASHTAGS]


# ---------------------------------------------------------------------------
# Defensive coercion of model output
# ---------------------------------------------------------------------------

def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _clean_tag(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    tag = value.strip().replace(" ", "")
    if not tag or tag == "#":
        return ""
    return tag if tag.startswith("#") else f"#{tag}"


def _rewrite(value: Any, fallback: str) -> str:
    return value.strip() if isinstance(value, str) and value.strip() else fallback


def coerce_analysis(payload: dict[str, Any], text: str) -> AnalysisResult:
    """Map the model's JSON onto AnalysisResult, filling gaps with safe defaults."""
    raw_sentiment = payload.get("sentiment") if isinstance(payload.get("sentiment"), dict) else {}
    label = str(raw_sentiment.get("label", "neutral")).lower()
    sentiment = Sentiment(
        label=label if label in _SENTIMENT_LABELS else "neutral",
        score=_clamp(_as_float(raw_sentiment.get("score")), -1.0, 1.0),
    )

    grade, ease = heuristics.readability(text)
    raw_readability = payload.get("readability") if isinstance(payload.get("readability"), dict) else {}
    grade = max(0.0, _as_float(raw_readability.get("fleschKincaidGrade"), grade))
    ease  = _clamp(_as_float(raw_readability.get("fleschScore"), ease), 0.0, 100.0)

    hashtags: list[Hashtag] = []
    for item in _as_list(payload.get("hashtags")):
        if not isinstance(item, dict) or not _clean_tag(item.get("tag")):
            continue
        rationale = item.get("rationale")
        hashtags.append(Hashtag(
            tag=_clean_tag(item.get("tag")),
            score=_clamp(_as_float(item.get("score")), 0.0, 1.0),
            rationale=str(rationale) if rationale else None,
        ))

    emojis = [e for e in _as_list(payload.get("emojiSuggestions")) if isinstance(e, str) and e.strip()]

    improved = payload.get("improvedText") if isinstance(payload.get("improvedText"), dict) else {}
    rewrites = PlatformRewrites(
        twitter=heuristics.twitter_version(
            _rewrite(improved.get("twitter"), text)),
        instagram=heuristics.instagram_version(
            _rewrite(improved.get("instagram"), text)),
        linkedin=_rewrite(improved.get("linkedin"), heuristics.linkedin_version(text)),
    )

    return AnalysisResult(
        word_count=heuristics.word_count(text),
        reading_grade=round(grade, 1),
        reading_ease=round(ease, 1),
        sentiment=sentiment,
        hashtags=hashtags[:MAX_HASHTAGS],
        emoji_suggestions=emojis[:MAX_EMOJIS],
        engagement_score=heuristics.engagement_score(text),
        engagement_tips=heuristics.pad_tips(_as_list(payload.get("engagementTips"))),
        platform_rewrites=rewrites,
    )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class ContentAnalysisEngine:
    """
    Shared by the job runner and the direct-analysis endpoints.

    `ai` is None when no provider key is configured; every call then goes
    straight to the heuristic path.
    """

    def __init__(
        self,
        cache:            AnalysisCache,
        ai:               AIAnalyzer | None = None,
        heuristic:        HeuristicAnalyzer | None = None,
        hashtag_attempts: int = 2,
    ) -> None:
        self._cache            = cache
        self._ai               = ai
        self._heuristic        = heuristic or HeuristicAnalyzer()
        self._hashtag_attempts = hashtag_attempts

    @traced("analysis")
    async def analyze(
        self,
        text:    str,
        targets: Iterable[Platform] = ALL_PLATFORMS,
    ) -> AnalysisReport:
        wanted = frozenset(targets)
        digest = fingerprint(text)
        t0 = time.perf_counter()

        cached = await self._cache.get(digest)
        if cached is not None:
            logger.info("Analysis cache hit | fingerprint=%s engine=%s", digest[:12], cached.engine)
            return _filtered(cached, wanted, cached=True)

        report = await self._compute(text)
        await self._cache.set(digest, report)

        logger.info(
            "Analysis completed | fingerprint=%s engine=%s words=%d elapsed_ms=%.0f",
            digest[:12], report.engine, report.analysis.word_count,
            (time.perf_counter() - t0) * 1000,
        )
        return _filtered(report, wanted, cached=False)

    async def _compute(self, text: str) -> AnalysisReport:
        if self._ai is not None and text.strip():
            try:
                result = await self._ai.analyze(text)
                return AnalysisReport(analysis=result, engine="ai")
            except ProviderError as exc:
                logger.warning("AI analysis failed, using heuristics | error=%s", exc)

        result = await self._heuristic.analyze(text)
        return AnalysisReport(analysis=result, engine="heuristic")

    @traced("hashtags")
    async def generate_hashtags(self, text: str) -> HashtagReport:
        digest = fingerprint(text)

        cached = await self._cache.get_hashtags(digest)
        if cached is not None:
            return cached.model_copy(update={"cached": True})

        report: HashtagReport | None = None
        if self._ai is not None and text.strip():
            try:
                suggestions = await self._ai.hashtags(text, attempts=self._hashtag_attempts)
                report = HashtagReport(hashtags=suggestions, engine="ai")
            except ProviderError as exc:
                logger.warning("AI hashtag generation failed, using heuristics | error=%s", exc)

        if report is None:
            report = HashtagReport(
                hashtags=[
                    HashtagSuggestion(tag=h.tag, rationale=f"Popular term (score: {h.score:.2f})")
                    for h in heuristics.frequency_hashtags(text)
                ],
                engine="heuristic",
            )

        await self._cache.set_hashtags(digest, report)
        return report


def _filtered(report: AnalysisReport, targets: frozenset[Platform], cached: bool) -> AnalysisReport:
    analysis = report.analysis.model_copy(
        update={"platform_rewrites": report.analysis.platform_rewrites.only(targets)}
    )
    return AnalysisReport(analysis=analysis, engine=report.engine, cached=cached)
