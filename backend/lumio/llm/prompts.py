"""Prompt templates for the AI OCR, analysis and hashtag calls."""

from __future__ import annotations

OCR_PROMPT = (
    "You are a high-accuracy OCR engine. Extract clean plain text from the provided image. "
    "Preserve paragraphs and line breaks. If text is partially unreadable, include "
    '"[UNREADABLE]" in its place. Output strictly JSON:\n'
    '{ "text": "full extracted text", "lines": ["..."], "confidence": 0.0-1.0 }'
)

ANALYSIS_PROMPT = """You are an expert social media editor. Given the "text" input below, return a JSON object with:
- sentiment: { label: "positive" | "neutral" | "negative", score: -1.0..1.0 }
- readability: { fleschKincaidGrade, fleschScore }
- hashtags: array of up to 10 { tag, score: 0.0..1.0, rationale }
- emojiSuggestions: array of up to 5 emojis
- engagementTips: array of exactly 3 concise tips (max 20 words each)
- improvedText: { twitter: string<=280, instagram: string<=2200, linkedin: string }
Return only valid JSON.
Input: "{text}"
"""

HASHTAG_PROMPT = (
    "Return 10 ranked hashtags for the input text with a one-line rationale each. "
    'Output JSON: { "hashtags":[{"tag":"#...", "rationale":"..."}] }\n'
    "Input: {text}"
)


def render(template: str, text: str) -> str:
    # str.format would trip over the literal JSON braces in the templates
    return template.replace("{text}", text)
