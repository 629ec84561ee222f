"""
Unit Tests — PII redaction
"""

from __future__ import annotations

import pytest

from lumio.analysis.pii import redact_pii


@pytest.mark.unit
class TestRedactPii:

    def test_email_and_ssn_are_replaced(self):
        result = redact_pii("Contact me at a@b.com or 123-45-6789")

        assert result.text == "Contact me at [REDACTED-EMAIL] or [REDACTED-SSN]"
        assert result.detected is True
        assert result.categories == {"ssn": 1, "email": 1}

    def test_card_number_with_spaces(self):
        result = redact_pii("Card: 4111 1111 1111 1111 exp 12/29")
        assert "[REDACTED-CARD]" in result.text
        assert "4111" not in result.text

    def test_card_is_not_partially_matched_as_phone(self):
        result = redact_pii("4111111111111111")
        assert result.text == "[REDACTED-CARD]"
        assert "phone" not in result.categories

    def test_phone_number(self):
        result = redact_pii("Call 555-123-4567 today")
        assert result.text == "Call [REDACTED-PHONE] today"
        assert result.categories == {"phone": 1}

    def test_multiple_hits_are_counted(self):
        result = redact_pii("x@example.org, y@example.org")
        assert result.categories == {"email": 2}

    def test_clean_text_is_untouched(self):
        text = "Nothing sensitive in here, just 42 apples."
        result = redact_pii(text)
        assert result.text == text
        assert result.detected is False
        assert result.categories == {}

    def test_non_standard_formats_pass_through(self):
        # best effort: spaced SSNs are not recognised
        result = redact_pii("SSN 123 45 6789")
        assert result.detected is False
