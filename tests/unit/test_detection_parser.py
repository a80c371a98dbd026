"""
Unit tests for the detection result parser.
"""

import json

import pytest

from authsnitch.analyzers.detection_parser import (
    DetectionResultParser,
    MalformedResponse,
    ParsedResponse,
    empty_result,
    json_candidates,
)
from authsnitch.models.detection import ParseFallback, RiskLevel


RESPONSE_BODY = {
    "findings": [
        {
            "type": "session_handling",
            "file": "app/controllers/sessions_controller.rb",
            "code_section": "session[:access_token] = token",
            "description": "Stores a token in the session",
            "security_relevance": "Session fixation",
            "risk_level": "HIGH",
            "recommendation": "Rotate the session id",
        },
        {
            "type": "oauth_flow",
            "file": "lib/auth/oauth_handler.rb",
            "code_section": "class OauthHandler",
            "description": "New OAuth handler",
        },
    ],
    "summary": "Session and OAuth handling changed.",
    "auth_changes_detected": True,
    "highest_risk": "high",
}


@pytest.fixture
def parser():
    """Create a parser with the neutral fallback."""
    return DetectionResultParser()


class TestDecode:
    """Tests for decoding detector output."""

    def test_fenced_block_round_trip(self, parser):
        """One fenced JSON block yields all of its findings."""
        raw = f"Here is my analysis:\n```json\n{json.dumps(RESPONSE_BODY)}\n```\nThanks."

        outcome = parser.decode(raw)

        assert isinstance(outcome, ParsedResponse)
        assert len(outcome.result.findings) == 2
        assert outcome.result.raw_response == raw

    def test_maps_finding_fields(self, parser):
        """Detector keys are mapped onto Finding fields."""
        result = parser.parse(json.dumps(RESPONSE_BODY))
        first, second = result.findings

        assert first.category == "session_handling"
        assert first.code_excerpt == "session[:access_token] = token"
        assert first.risk_level == RiskLevel.HIGH
        assert first.recommendation == "Rotate the session id"
        assert second.risk_level == RiskLevel.NONE
        assert second.security_relevance is None
        assert result.highest_risk == RiskLevel.HIGH
        assert result.auth_changes_detected is True

    def test_brace_span_in_prose(self, parser):
        """JSON embedded in prose is found by its braces."""
        raw = 'Result follows {"findings": [], "summary": "Nothing notable"} end.'

        result = parser.parse(raw)

        assert result.summary == "Nothing notable"
        assert result.findings == []

    def test_unknown_risk_level_maps_to_none(self, parser):
        """Unrecognized risk strings become none."""
        body = {
            "findings": [{"type": "x", "risk_level": "severe"}],
            "auth_changes_detected": True,
            "highest_risk": "extreme",
        }

        result = parser.parse(json.dumps(body))

        assert result.findings[0].risk_level == RiskLevel.NONE
        assert result.highest_risk == RiskLevel.NONE

    def test_highest_risk_cleared_without_signal(self, parser):
        """No findings and no auth flag forces highest_risk to none."""
        body = {"findings": [], "auth_changes_detected": False, "highest_risk": "critical"}

        result = parser.parse(json.dumps(body))

        assert result.highest_risk == RiskLevel.NONE

    def test_missing_summary_uses_default(self, parser):
        """An absent summary falls back to the default text."""
        result = parser.parse('{"findings": []}')

        assert result.summary == "Analysis complete."

    def test_non_object_findings_are_skipped(self, parser):
        """Findings that are not objects are dropped."""
        body = {"findings": ["oops", {"type": "token_storage"}, 3], "auth_changes_detected": True}

        result = parser.parse(json.dumps(body))

        assert [f.category for f in result.findings] == ["token_storage"]

    def test_top_level_array_is_malformed(self, parser):
        """A JSON array is not a detector response."""
        outcome = parser.decode("[1, 2, 3]")

        assert isinstance(outcome, MalformedResponse)
        assert "list" in outcome.reason

    def test_fenced_snippet_before_body(self, parser):
        """A quoted non-object snippet does not hide the real response."""
        raw = (
            "The diff adds roles like ```[\"admin\"]``` to the allow list.\n"
            f"{json.dumps(RESPONSE_BODY)}"
        )

        outcome = parser.decode(raw)

        assert isinstance(outcome, ParsedResponse)
        assert len(outcome.result.findings) == 2
        assert outcome.result.auth_changes_detected is True

    @pytest.mark.parametrize("flag,expected", [
        (True, True),
        ("true", True),
        ("TRUE", True),
        (False, False),
        ("false", False),
        ("no", False),
        (1, False),
        (None, False),
    ])
    def test_auth_flag_requires_true(self, parser, flag, expected):
        """Only a boolean or the string "true" sets the auth flag."""
        body = {"findings": [], "summary": "x", "auth_changes_detected": flag}

        result = parser.parse(json.dumps(body))

        assert result.auth_changes_detected is expected

    def test_findings_not_a_list_is_malformed(self, parser):
        """A non-list findings value is rejected."""
        outcome = parser.decode('{"findings": "none", "summary": "x"}')

        assert isinstance(outcome, MalformedResponse)
        assert outcome.reason == "'findings' is not a list"

    def test_plain_text_is_malformed(self, parser):
        """Text with no JSON is reported as invalid JSON."""
        outcome = parser.decode("I could not analyze this diff.")

        assert isinstance(outcome, MalformedResponse)
        assert outcome.reason.startswith("invalid JSON")


class TestFallback:
    """Tests for the configurable fallback policy."""

    def test_neutral_fallback(self):
        """Neutral fallback reports nothing detected."""
        parser = DetectionResultParser(fallback=ParseFallback.NEUTRAL)

        result = parser.parse("The password handling looks risky.")

        assert result.auth_changes_detected is False
        assert result.findings == []
        assert result.summary.startswith("Failed to parse detector response:")
        assert result.raw_response == "The password handling looks risky."

    def test_keyword_heuristic_detects_auth_words(self):
        """Heuristic fallback flags raw text mentioning auth terms."""
        parser = DetectionResultParser(fallback=ParseFallback.KEYWORD_HEURISTIC)

        result = parser.parse("The Password handling looks risky.")

        assert result.auth_changes_detected is True
        assert result.highest_risk == RiskLevel.NONE
        assert "Manual review recommended" in result.summary
        assert "Raw response preview: The Password handling looks risky...." in result.summary

    def test_keyword_heuristic_without_auth_words(self):
        """Heuristic fallback stays quiet for unrelated text."""
        parser = DetectionResultParser(fallback=ParseFallback.KEYWORD_HEURISTIC)

        result = parser.parse("Only README typos were fixed.")

        assert result.auth_changes_detected is False

    def test_heuristic_preview_is_truncated(self):
        """The preview holds at most 200 characters of raw text."""
        parser = DetectionResultParser(fallback=ParseFallback.KEYWORD_HEURISTIC)

        result = parser.parse("x" * 500)

        assert ("x" * 200 + "...") in result.summary
        assert ("x" * 201) not in result.summary


class TestParseEdgeCases:
    """Tests for input that is not a normal response."""

    def test_none_returns_empty_result(self, parser):
        """No response yields the empty result."""
        assert parser.parse(None) == empty_result()
        assert parser.parse(None).summary == "No diff content provided for analysis."

    def test_empty_string_is_malformed(self, parser):
        """An empty response goes through the fallback."""
        result = parser.parse("")

        assert result.auth_changes_detected is False
        assert result.summary.startswith("Failed to parse detector response:")

    def test_non_string_is_coerced(self, parser):
        """Non-string input is stringified rather than rejected."""
        result = parser.parse(12345)

        assert result.auth_changes_detected is False


class TestJsonCandidates:
    """Tests for candidate extraction order."""

    def test_order(self):
        """Fenced interior first, then brace span, then the whole text."""
        text = 'See ```json\n{"summary": "a"}\n``` and {"summary": "b"}'

        candidates = json_candidates(text)

        assert candidates[0] == '{"summary": "a"}'
        assert candidates[1].startswith('{"summary": "a"}')
        assert candidates[-1] == text.strip()

    def test_brace_span_requires_known_key(self):
        """Braces without findings/summary keys are not a candidate."""
        assert json_candidates("call f({x}) now") == ["call f({x}) now"]
