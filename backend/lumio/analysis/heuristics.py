"""
Heuristic content analysis — the no-AI path.

Pure functions over plain text. `basic_analysis()` always returns a complete
AnalysisResult: sentiment, readability, exactly three engagement tips and
all three platform rewrites (non-empty for non-empty input).
"""

from __future__ import annotations

import re
from collections import Counter

from lumio.schemas.analysis import (
    ENGAGEMENT_TIP_COUNT,
    INSTAGRAM_MAX_CHARS,
    MAX_HASHTAGS,
    TWITTER_MAX_CHARS,
    AnalysisResult,
    Hashtag,
    PlatformRewrites,
    Sentiment,
)

# ---------------------------------------------------------------------------
# Word lists
# ---------------------------------------------------------------------------

POSITIVE_WORDS = frozenset({
    "amazing", "awesome", "excellent", "fantastic", "great", "wonderful",
    "brilliant", "outstanding", "superb", "magnificent", "incredible",
    "perfect", "beautiful", "love", "best", "good", "nice", "happy",
    "excited", "thrilled", "delighted", "pleased", "satisfied",
})

NEGATIVE_WORDS = frozenset({
    "terrible", "awful", "horrible", "bad", "worst", "hate", "disgusting",
    "disappointing", "frustrating", "annoying", "sad", "angry", "upset",
    "depressed", "worried", "concerned", "difficult", "problem", "issue",
    "fail", "failed", "broken", "wrong", "error", "mistake",
})

CTA_WORDS = (
    "click", "share", "comment", "like", "follow",
    "subscribe", "join", "try", "get", "download",
)

EMOJIS_BY_SENTIMENT = {
    "positive": ["🚀", "✨", "🔥", "💯", "🎉"],
    "neutral":  ["📝", "💭", "🤔", "📊", "🎯"],
    "negative": ["😔", "💭", "🤷", "📉", "⚠️"],
}

DEFAULT_TIPS = (
    "Use emojis to make content more engaging",
    "Share personal experiences or stories",
    "Post at optimal times for your audience",
    "Use trending hashtags relevant to your content",
    "Respond quickly to comments and messages",
)

LINKEDIN_REFLOW_THRESHOLD = 1300
LINKEDIN_PARAGRAPH_CHARS  = 300

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_SYLLABLE_SUFFIX = re.compile(r"(?:[^laeiouy]es|ed|[^laeiouy]e)$")
_VOWEL_GROUP = re.compile(r"[aeiouy]{1,2}")
_NUMBER = re.compile(r"\b\d+\b")
_NON_WORD = re.compile(r"[^\w\s]")


def _words(text: str) -> list[str]:
    return text.split()


def word_count(text: str) -> int:
    return len(_words(text))


# ---------------------------------------------------------------------------
# Readability
# ---------------------------------------------------------------------------

def count_syllables(word: str) -> int:
    word = word.lower()
    if len(word) <= 3:
        return 1
    word = _SYLLABLE_SUFFIX.sub("", word)
    word = re.sub(r"^y", "", word)
    return len(_VOWEL_GROUP.findall(word)) or 1


def readability(text: str) -> tuple[float, float]:
    """Return (Flesch–Kincaid grade ≥ 0, Flesch reading ease 0–100)."""
    sentences = [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]
    words = _words(text)
    if not sentences or not words:
        return 0.0, 0.0

    words_per_sentence = len(words) / len(sentences)
    syllables_per_word = sum(count_syllables(w) for w in words) / len(words)

    ease  = 206.835 - 1.015 * words_per_sentence - 84.6 * syllables_per_word
    grade = 0.39 * words_per_sentence + 11.8 * syllables_per_word - 15.59

    return max(0.0, round(grade, 1)), max(0.0, min(100.0, round(ease, 1)))


# ---------------------------------------------------------------------------
# Sentiment
# ---------------------------------------------------------------------------

def sentiment(text: str) -> Sentiment:
    words = text.lower().split()
    positive = sum(1 for w in words if w in POSITIVE_WORDS)
    negative = sum(1 for w in words if w in NEGATIVE_WORDS)

    if positive + negative == 0:
        return Sentiment(label="neutral", score=0.0)

    polarity = (positive - negative) / len(words)
    if polarity > 0.01:
        return Sentiment(label="positive", score=min(1.0, polarity * 10))
    if polarity < -0.01:
        return Sentiment(label="negative", score=max(-1.0, polarity * 10))
    return Sentiment(label="neutral", score=0.0)


# ---------------------------------------------------------------------------
# Engagement
# ---------------------------------------------------------------------------

def engagement_score(text: str) -> float:
    score = 0.0
    words = word_count(text)
    lowered = text.lower()

    if 50 <= words <= 300:
        score += 0.2
    elif 20 <= words <= 500:
        score += 0.1

    score += min(0.2, text.count("?") * 0.1)

    if 1 <= text.count("!") <= 3:
        score += 0.1

    score += min(0.2, sum(1 for w in CTA_WORDS if w in lowered) * 0.05)
    score += min(0.15, len(_NUMBER.findall(text)) * 0.03)

    return round(min(1.0, max(0.0, score)), 3)


def engagement_tips(text: str) -> list[str]:
    tips: list[str] = []
    words = word_count(text)
    lowered = text.lower()

    if words < 20:
        tips.append("Add more detail to increase engagement")
    elif words > 500:
        tips.append("Consider shortening for better readability")

    if "?" not in text:
        tips.append("Add questions to encourage interaction")
    if "!" not in text:
        tips.append("Use exclamation points to show enthusiasm")
    if not any(w in lowered for w in CTA_WORDS[:5]):
        tips.append("Include a clear call-to-action")

    for tip in DEFAULT_TIPS:
        if len(tips) >= ENGAGEMENT_TIP_COUNT:
            break
        if tip not in tips:
            tips.append(tip)

    return tips[:ENGAGEMENT_TIP_COUNT]


def pad_tips(tips: list[str]) -> list[str]:
    """Truncate or pad an arbitrary tip list to exactly three entries."""
    cleaned = [t.strip() for t in tips if isinstance(t, str) and t.strip()]
    for tip in DEFAULT_TIPS:
        if len(cleaned) >= ENGAGEMENT_TIP_COUNT:
            break
        if tip not in cleaned:
            cleaned.append(tip)
    return cleaned[:ENGAGEMENT_TIP_COUNT]


# ---------------------------------------------------------------------------
# Hashtags & emoji
# ---------------------------------------------------------------------------

def frequency_hashtags(text: str, limit: int = MAX_HASHTAGS) -> list[Hashtag]:
    words = [w for w in _NON_WORD.sub("", text.lower()).split() if len(w) > 3]
    if not words:
        return []
    ranked = Counter(words).most_common(limit)
    return [
        Hashtag(tag=f"#{word}", score=round(min(1.0, freq / len(words) * 10), 3))
        for word, freq in ranked
    ]


def emoji_suggestions(label: str) -> list[str]:
    return list(EMOJIS_BY_SENTIMENT.get(label, EMOJIS_BY_SENTIMENT["neutral"]))


# ---------------------------------------------------------------------------
# Platform rewrites
# ---------------------------------------------------------------------------

def _truncate_at_word(text: str, limit: int, cut: int, min_space: int) -> str:
    if len(text) <= limit:
        return text
    truncated = text[:cut].strip()
    last_space = truncated.rfind(" ")
    if last_space > min_space:
        truncated = truncated[:last_space]
    return truncated + "..."


def twitter_version(text: str) -> str:
    return _truncate_at_word(text, TWITTER_MAX_CHARS, 270, 200)


def instagram_version(text: str) -> str:
    return _truncate_at_word(text, INSTAGRAM_MAX_CHARS, 2190, 2000)


def linkedin_version(text: str) -> str:
    if len(text) <= LINKEDIN_REFLOW_THRESHOLD:
        return text

    paragraphs = [p for p in text.split("\n") if p.strip()]
    if len(paragraphs) != 1:
        return text

    blocks: list[str] = []
    current = ""
    for sentence in (s.strip() for s in _SENTENCE_SPLIT.split(text)):
        if not sentence:
            continue
        if current and len(current) + len(sentence) > LINKEDIN_PARAGRAPH_CHARS:
            blocks.append(current.strip())
            current = ""
        current += sentence + ". "
    if current.strip():
        blocks.append(current.strip())
    return "\n\n".join(blocks)


def platform_rewrites(text: str) -> PlatformRewrites:
    return PlatformRewrites(
        twitter=twitter_version(text),
        instagram=instagram_version(text),
        linkedin=linkedin_version(text),
    )


# ---------------------------------------------------------------------------
# Full fallback analysis
# ---------------------------------------------------------------------------

def basic_analysis(text: str) -> AnalysisResult:
    grade, ease = readability(text)
    mood = sentiment(text)
    return AnalysisResult(
        word_count=word_count(text),
        reading_grade=grade,
        reading_ease=ease,
        sentiment=mood,
        hashtags=frequency_hashtags(text),
        emoji_suggestions=emoji_suggestions(mood.label),
        engagement_score=engagement_score(text),
        engagement_tips=engagement_tips(text),
        platform_rewrites=platform_rewrites(text),
    )
