"""
Content Analysis — Pydantic Schemas

AnalysisResult is the single output shape of both analysis paths (AI and
heuristic) and is what gets cached by content fingerprint. Every rewrite field
is always a string; unrequested platforms carry "".
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator

TWITTER_MAX_CHARS   = 280
INSTAGRAM_MAX_CHARS = 2200
MAX_HASHTAGS        = 10
MAX_EMOJIS          = 5
ENGAGEMENT_TIP_COUNT = 3


class Platform(str, Enum):
    TWITTER   = "twitter"
    INSTAGRAM = "instagram"
    LINKEDIN  = "linkedin"


ALL_PLATFORMS: tuple[Platform, ...] = tuple(Platform)


class Sentiment(BaseModel):
    label: Literal["positive", "neutral", "negative"] = "neutral"
    score: float = Field(0.0, ge=-1.0, le=1.0)


class Hashtag(BaseModel):
    tag:       str
    score:     float = Field(0.0, ge=0.0, le=1.0)
    rationale: str | None = None


class PlatformRewrites(BaseModel):
    twitter:   str = Field("", max_length=TWITTER_MAX_CHARS)
    instagram: str = Field("", max_length=INSTAGRAM_MAX_CHARS)
    linkedin:  str = ""

    def only(self, targets: set[Platform] | frozenset[Platform]) -> "PlatformRewrites":
        """Blank out every platform not in `targets`."""
        return PlatformRewrites(
            twitter=self.twitter if Platform.TWITTER in targets else "",
            instagram=self.instagram if Platform.INSTAGRAM in targets else "",
            linkedin=self.linkedin if Platform.LINKEDIN in targets else "",
        )


class AnalysisResult(BaseModel):
    word_count:        int   = Field(0, ge=0)
    reading_grade:     float = Field(0.0, ge=0.0)
    reading_ease:      float = Field(0.0, ge=0.0, le=100.0)
    sentiment:         Sentiment = Field(default_factory=Sentiment)
    hashtags:          list[Hashtag] = Field(default_factory=list, max_length=MAX_HASHTAGS)
    emoji_suggestions: list[str] = Field(default_factory=list, max_length=MAX_EMOJIS)
    engagement_score:  float = Field(0.0, ge=0.0, le=1.0)
    engagement_tips:   list[str] = Field(
        ..., min_length=ENGAGEMENT_TIP_COUNT, max_length=ENGAGEMENT_TIP_COUNT
    )
    platform_rewrites: PlatformRewrites = Field(default_factory=PlatformRewrites)


class AnalysisReport(BaseModel):
    """Direct-analysis response: the result plus how it was produced."""
    analysis: AnalysisResult
    engine:   Literal["ai", "heuristic"]
    cached:   bool = False


class HashtagSuggestion(BaseModel):
    tag:       str
    rationale: str = ""


class HashtagReport(BaseModel):
    hashtags: list[HashtagSuggestion] = Field(default_factory=list, max_length=MAX_HASHTAGS)
    engine:   Literal["ai", "heuristic"]
    cached:   bool = False


class AnalyzeRequest(BaseModel):
    text:    str = Field(..., min_length=1)
    targets: list[Platform] = Field(default_factory=lambda: list(ALL_PLATFORMS))

    @field_validator("text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Text is required")
        return value


class HashtagRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=10_000)
