"""
PII redaction — fixed-format syntactic scan.

Best effort only: non-standard formats (spaced SSNs, international phone
numbers, ...) pass through. Patterns run in declaration order, so card
numbers are replaced before the shorter phone pattern could match a slice
of them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

PII_PATTERNS: tuple[tuple[str, re.Pattern[str], str], ...] = (
    ("ssn",   re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),                              "[REDACTED-SSN]"),
    ("card",  re.compile(r"\b\d{4}\s?\d{4}\s?\d{4}\s?\d{4}\b"),                  "[REDACTED-CARD]"),
    ("email", re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[REDACTED-EMAIL]"),
    ("phone", re.compile(r"\b\d{3}-\d{3}-\d{4}\b"),                              "[REDACTED-PHONE]"),
)


@dataclass
class RedactionResult:
    text:       str
    detected:   bool
    categories: dict[str, int] = field(default_factory=dict)


def redact_pii(text: str) -> RedactionResult:
    categories: dict[str, int] = {}
    redacted = text

    for category, pattern, token in PII_PATTERNS:
        redacted, hits = pattern.subn(token, redacted)
        if hits:
            categories[category] = hits

    if categories:
        logger.info("PII redacted | categories=%s", categories)

    return RedactionResult(text=redacted, detected=bool(categories), categories=categories)
