"""
Unit Tests — ContentAnalysisEngine
═══════════════════════════════════
Coverage targets:
  ✅ Cache hit   → identical analysis, cached=True, no recompute
  ✅ Whitespace-only differences share a fingerprint
  ✅ AI transient failures → retried, then complete heuristic result
  ✅ AI non-retryable failure → heuristic immediately
  ✅ AI JSON with gaps → back-filled, local word count / engagement
  ✅ Target filtering never leaks into the cache
  ✅ Hashtags: AI path, heuristic fallback rationale, cache
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from lumio.analysis import heuristics
from lumio.analysis.engine import AIAnalyzer, ContentAnalysisEngine, coerce_analysis
from lumio.core.exceptions import ProviderError, TransientProviderError
from lumio.schemas.analysis import Platform
from lumio.storage.backends import InMemoryBackend
from lumio.storage.cache import AnalysisCache

SAMPLE_TEXT = (
    "We just shipped a great new feature for our community. "
    "Try it today and tell us what you think! What should we build next?"
)


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def cache() -> AnalysisCache:
    return AnalysisCache(InMemoryBackend())


@pytest.fixture
def llm() -> MagicMock:
    client = MagicMock()
    client.complete_json = AsyncMock()
    return client


@pytest.fixture
def make_engine(cache, llm):
    def _build(with_ai: bool = True, attempts: int = 3) -> ContentAnalysisEngine:
        ai = AIAnalyzer(llm, attempts=attempts, base_delay=0.0) if with_ai else None
        return ContentAnalysisEngine(cache, ai=ai, hashtag_attempts=2)
    return _build


# ─────────────────────────────────────────────────────────────────────────────
# Cache behaviour
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestAnalysisCache:

    async def test_second_call_is_a_cache_hit(self, make_engine):
        engine = make_engine(with_ai=False)

        first  = await engine.analyze(SAMPLE_TEXT)
        second = await engine.analyze(SAMPLE_TEXT)

        assert first.cached is False
        assert second.cached is True
        assert second.engine == first.engine == "heuristic"
        assert second.analysis.model_dump_json() == first.analysis.model_dump_json()

    async def test_whitespace_variants_share_an_entry(self, make_engine):
        engine = make_engine(with_ai=False)

        await engine.analyze("hello   world\n")
        report = await engine.analyze("hello world")

        assert report.cached is True

    async def test_cache_hit_skips_the_provider(self, make_engine, llm):
        llm.complete_json.return_value = {"engagementTips": ["Ask a question"]}
        engine = make_engine()

        await engine.analyze(SAMPLE_TEXT)
        report = await engine.analyze(SAMPLE_TEXT)

        assert report.engine == "ai"
        assert report.cached is True
        assert llm.complete_json.await_count == 1

    async def test_target_filtering_does_not_leak_into_cache(self, make_engine):
        engine = make_engine(with_ai=False)

        twitter_only = await engine.analyze(SAMPLE_TEXT, [Platform.TWITTER])
        assert twitter_only.analysis.platform_rewrites.twitter
        assert twitter_only.analysis.platform_rewrites.instagram == ""
        assert twitter_only.analysis.platform_rewrites.linkedin == ""

        everything = await engine.analyze(SAMPLE_TEXT)
        assert everything.cached is True
        assert everything.analysis.platform_rewrites.instagram
        assert everything.analysis.platform_rewrites.linkedin

    async def test_backend_outage_degrades_to_recompute(self, llm):
        backend = MagicMock()
        backend.get = AsyncMock(side_effect=ConnectionError("redis down"))
        backend.set = AsyncMock(side_effect=ConnectionError("redis down"))
        engine = ContentAnalysisEngine(AnalysisCache(backend))

        report = await engine.analyze(SAMPLE_TEXT)

        assert report.engine == "heuristic"
        assert report.cached is False


# ─────────────────────────────────────────────────────────────────────────────
# AI → heuristic fallback
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestFallback:

    async def test_transient_failures_fall_back_after_retries(self, make_engine, llm):
        llm.complete_json.side_effect = TransientProviderError("503 from provider")
        engine = make_engine(attempts=3)

        report = await engine.analyze(SAMPLE_TEXT)

        assert llm.complete_json.await_count == 3
        assert report.engine == "heuristic"
        rewrites = report.analysis.platform_rewrites
        assert rewrites.twitter and rewrites.instagram and rewrites.linkedin
        assert len(report.analysis.engagement_tips) == 3
        assert report.analysis == heuristics.basic_analysis(SAMPLE_TEXT)

    async def test_non_retryable_failure_falls_back_immediately(self, make_engine, llm):
        llm.complete_json.side_effect = ProviderError("401 invalid api key")
        engine = make_engine(attempts=3)

        report = await engine.analyze(SAMPLE_TEXT)

        assert llm.complete_json.await_count == 1
        assert report.engine == "heuristic"

    async def test_blank_text_never_reaches_the_provider(self, make_engine, llm):
        engine = make_engine()

        report = await engine.analyze("   ")

        llm.complete_json.assert_not_awaited()
        assert report.engine == "heuristic"
        assert report.analysis.word_count == 0


# ─────────────────────────────────────────────────────────────────────────────
# AI output coercion
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestCoerceAnalysis:

    def test_missing_fields_are_back_filled(self):
        payload = {
            "sentiment": {"label": "POSITIVE", "score": 5},
            "hashtags": [{"tag": "growth", "score": 0.8}, {"tag": ""}, "junk"],
            "engagementTips": ["Ask a question"],
        }
        result = coerce_analysis(payload, SAMPLE_TEXT)

        assert result.sentiment.label == "positive"
        assert result.sentiment.score == 1.0
        assert [h.tag for h in result.hashtags] == ["#growth"]
        assert result.engagement_tips[0] == "Ask a question"
        assert len(result.engagement_tips) == 3
        assert result.word_count == heuristics.word_count(SAMPLE_TEXT)
        assert result.engagement_score == heuristics.engagement_score(SAMPLE_TEXT)
        assert result.platform_rewrites.twitter == SAMPLE_TEXT

    def test_readability_defaults_to_local_formula(self):
        grade, ease = heuristics.readability(SAMPLE_TEXT)
        result = coerce_analysis({}, SAMPLE_TEXT)
        assert result.reading_grade == grade
        assert result.reading_ease == ease

    def test_unknown_sentiment_label_becomes_neutral(self):
        result = coerce_analysis({"sentiment": {"label": "ecstatic", "score": "n/a"}}, "x")
        assert result.sentiment.label == "neutral"
        assert result.sentiment.score == 0.0

    def test_overlong_rewrites_are_truncated(self):
        payload = {"improvedText": {"twitter": "word " * 100, "instagram": "a" * 3000}}
        result = coerce_analysis(payload, SAMPLE_TEXT)
        assert len(result.platform_rewrites.twitter) <= 280
        assert len(result.platform_rewrites.instagram) <= 2200

    def test_emoji_list_is_capped(self):
        payload = {"emojiSuggestions": ["🚀", "✨", "🔥", "💯", "🎉", "😀", "👍"]}
        result = coerce_analysis(payload, SAMPLE_TEXT)
        assert len(result.emoji_suggestions) == 5


# ─────────────────────────────────────────────────────────────────────────────
# Hashtags
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestHashtags:

    async def test_ai_hashtags(self, make_engine, llm):
        llm.complete_json.return_value = {
            "hashtags": [{"tag": "launch", "rationale": "Product release"}, {"tag": "#"}],
        }
        engine = make_engine()

        report = await engine.generate_hashtags(SAMPLE_TEXT)

        assert report.engine == "ai"
        assert [h.tag for h in report.hashtags] == ["#launch"]
        assert report.hashtags[0].rationale == "Product release"

    async def test_heuristic_fallback_rationale(self, make_engine, llm):
        llm.complete_json.side_effect = TransientProviderError("timeout")
        engine = make_engine()

        report = await engine.generate_hashtags("python python python code code testing")

        assert llm.complete_json.await_count == 2
        assert report.engine == "heuristic"
        assert report.hashtags[0].tag == "#python"
        assert report.hashtags[0].rationale == "Popular term (score: 1.00)"

    async def test_hashtags_are_cached(self, make_engine):
        engine = make_engine(with_ai=False)

        await engine.generate_hashtags(SAMPLE_TEXT)
        report = await engine.generate_hashtags(SAMPLE_TEXT)

        assert report.cached is True
