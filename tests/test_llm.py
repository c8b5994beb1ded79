"""Tests for money_analyzer.llm -- adapters, prompt construction, and response parsing.

All tests use mocked HTTP responses. No real API calls are made.
"""

from __future__ import annotations

import json
from unittest.mock import patch

import httpx

from money_analyzer.llm import (
    AnthropicAdapter,
    GeminiAdapter,
    NullAdapter,
    _build_prompt,
    _parse_response,
    make_adapter,
)

# ---------------------------------------------------------------------------
# Shared test data
# ---------------------------------------------------------------------------

SAMPLE_TRANSACTIONS = [
    {"index": 1, "description": "ACME PTY LTD", "amount": "60.00", "type": "Expense"},
    {
        "index": 2,
        "description": "PAYPAL *A1B2",
        "amount": "45.99",
        "type": "Expense",
        "paypal": "Spotify (Express Checkout Payment)",
        "item": "Premium",
    },
]

SAMPLE_CATEGORIES = [
    {"name": "Groceries", "description": "Food and household essentials"},
    {"name": "Entertainment", "description": "Movies, games, and recreational activities"},
    {"name": "Other", "description": ""},
]

SAMPLE_SUGGESTIONS = [
    {"index": 1, "category": "Other", "confidence": 0.6, "reason": "unknown business"},
    {"index": 2, "category": "Entertainment", "confidence": 0.95, "reason": "music streaming"},
]


def _make_gemini_response(suggestions: list[dict]) -> dict:
    """Build a mock generateContent response body."""
    return {
        "candidates": [
            {
                "content": {"role": "model", "parts": [{"text": json.dumps(suggestions)}]},
                "finishReason": "STOP",
            }
        ]
    }


def _make_anthropic_response(suggestions: list[dict]) -> dict:
    """Build a mock Anthropic Messages API response body."""
    return {
        "id": "msg_test123",
        "type": "message",
        "role": "assistant",
        "content": [{"type": "text", "text": json.dumps(suggestions)}],
        "stop_reason": "end_turn",
    }


def _response(status: int, body, url: str = "https://example.test") -> httpx.Response:
    return httpx.Response(status_code=status, json=body, request=httpx.Request("POST", url))


# ---------------------------------------------------------------------------
# _build_prompt
# ---------------------------------------------------------------------------


class TestBuildPrompt:
    """Tests for prompt construction."""

    def test_contains_categories(self):
        prompt = _build_prompt(SAMPLE_TRANSACTIONS, SAMPLE_CATEGORIES)
        assert "## Available Categories" in prompt
        assert "Groceries, Entertainment, Other" in prompt
        assert '- Use "Groceries" for food and household essentials' in prompt
        assert '- Use "Other" for general category' in prompt

    def test_contains_transactions(self):
        prompt = _build_prompt(SAMPLE_TRANSACTIONS, SAMPLE_CATEGORIES)
        assert '1. Description: "ACME PTY LTD" | Amount: -$60.00 | Type: Expense' in prompt
        assert "| PayPal: Spotify (Express Checkout Payment) | Item: Premium" in prompt

    def test_income_amount_sign(self):
        txn = [{"index": 1, "description": "Pay", "amount": "10.00", "type": "Income"}]
        assert "Amount: +$10.00 | Type: Income" in _build_prompt(txn, SAMPLE_CATEGORIES)

    def test_response_format(self):
        prompt = _build_prompt(SAMPLE_TRANSACTIONS, SAMPLE_CATEGORIES)
        assert "## Response Format" in prompt
        assert "JSON array" in prompt
        assert '"confidence"' in prompt

    def test_custom_rules_section(self):
        rules = [{"pattern": "ACME", "category": "Other", "reason": "client"}]
        prompt = _build_prompt(SAMPLE_TRANSACTIONS, SAMPLE_CATEGORIES, rules)
        assert "## User Preferences" in prompt
        assert '- If description contains "ACME", prefer "Other" (client)' in prompt

    def test_no_custom_rules_section_by_default(self):
        assert "User Preferences" not in _build_prompt(SAMPLE_TRANSACTIONS, SAMPLE_CATEGORIES)


# ---------------------------------------------------------------------------
# _parse_response
# ---------------------------------------------------------------------------


class TestParseResponse:
    """Tests for LLM response parsing."""

    def test_clean_json_array(self):
        result = _parse_response(json.dumps(SAMPLE_SUGGESTIONS))
        assert len(result) == 2
        assert result[1] == {
            "index": 2,
            "category": "Entertainment",
            "confidence": 0.95,
            "reason": "music streaming",
        }

    def test_json_in_code_fence(self):
        text = "Here you go:\n\n```json\n" + json.dumps(SAMPLE_SUGGESTIONS) + "\n```\nDone [1]."
        assert len(_parse_response(text)) == 2

    def test_json_with_surrounding_text(self):
        text = "Results:\n" + json.dumps(SAMPLE_SUGGESTIONS) + "\nHope this helps."
        assert len(_parse_response(text)) == 2

    def test_confidence_clamped_and_defaulted(self):
        text = json.dumps(
            [
                {"index": 1, "category": "Other", "confidence": 0.1},
                {"index": 2, "category": "Other", "confidence": 3},
                {"index": 3, "category": "Other"},
            ]
        )
        result = _parse_response(text)
        assert [r["confidence"] for r in result] == [0.5, 1.0, 0.7]
        assert result[2]["reason"] == "AI categorization"

    def test_string_index_coerced(self):
        result = _parse_response('[{"index": "2", "category": "Other"}]')
        assert result[0]["index"] == 2

    def test_skips_invalid_items(self):
        text = json.dumps(
            [
                {"index": 1, "category": "Other"},
                {"index": 2},
                {"category": "Other"},
                {"index": "two", "category": "Other"},
                "not a dict",
            ]
        )
        result = _parse_response(text)
        assert [r["index"] for r in result] == [1]

    def test_no_json_array_returns_empty(self):
        assert _parse_response("I cannot help with that.") == []

    def test_invalid_json_returns_empty(self):
        assert _parse_response('[{"index": 1, "category": incomplete]') == []

    def test_non_list_json_returns_empty(self):
        assert _parse_response('{"index": 1, "category": "Other"}') == []


# ---------------------------------------------------------------------------
# GeminiAdapter
# ---------------------------------------------------------------------------


class TestGeminiAdapter:
    """Tests for the GeminiAdapter with mocked HTTP responses."""

    def _make_adapter(self) -> GeminiAdapter:
        return GeminiAdapter(model="gemini-2.5-flash-lite", api_key_env="TEST_GEMINI_KEY")

    def test_successful_categorization(self):
        adapter = self._make_adapter()
        mock_response = _response(200, _make_gemini_response(SAMPLE_SUGGESTIONS))
        with (
            patch.dict("os.environ", {"TEST_GEMINI_KEY": "gm-test-key"}),
            patch("money_analyzer.llm.httpx.post", return_value=mock_response) as mock_post,
        ):
            result = adapter.categorize_batch(SAMPLE_TRANSACTIONS, SAMPLE_CATEGORIES)

        assert [r["category"] for r in result] == ["Other", "Entertainment"]

        mock_post.assert_called_once()
        url = mock_post.call_args.args[0]
        assert url.endswith("/models/gemini-2.5-flash-lite:generateContent")
        assert mock_post.call_args.kwargs["headers"]["x-goog-api-key"] == "gm-test-key"
        body = mock_post.call_args.kwargs["json"]
        assert body["tools"] == [{"google_search": {}}]
        assert "ACME PTY LTD" in body["contents"][0]["parts"][0]["text"]

    def test_missing_api_key_returns_empty(self):
        adapter = self._make_adapter()
        with (
            patch.dict("os.environ", {}, clear=True),
            patch("money_analyzer.llm.httpx.post") as mock_post,
        ):
            assert adapter.categorize_batch(SAMPLE_TRANSACTIONS, SAMPLE_CATEGORIES) == []
        mock_post.assert_not_called()

    def test_empty_batch_skips_request(self):
        adapter = self._make_adapter()
        with patch("money_analyzer.llm.httpx.post") as mock_post:
            assert adapter.categorize_batch([], SAMPLE_CATEGORIES) == []
        mock_post.assert_not_called()

    def test_http_error_returns_empty(self):
        adapter = self._make_adapter()
        mock_response = _response(429, {"error": {"message": "quota"}})
        with (
            patch.dict("os.environ", {"TEST_GEMINI_KEY": "k"}),
            patch("money_analyzer.llm.httpx.post", return_value=mock_response),
        ):
            assert adapter.categorize_batch(SAMPLE_TRANSACTIONS, SAMPLE_CATEGORIES) == []

    def test_timeout_returns_empty(self):
        adapter = self._make_adapter()
        with (
            patch.dict("os.environ", {"TEST_GEMINI_KEY": "k"}),
            patch(
                "money_analyzer.llm.httpx.post",
                side_effect=httpx.ReadTimeout("timed out"),
            ),
        ):
            assert adapter.categorize_batch(SAMPLE_TRANSACTIONS, SAMPLE_CATEGORIES) == []

    def test_connection_error_returns_empty(self):
        adapter = self._make_adapter()
        with (
            patch.dict("os.environ", {"TEST_GEMINI_KEY": "k"}),
            patch(
                "money_analyzer.llm.httpx.post",
                side_effect=httpx.ConnectError("refused"),
            ),
        ):
            assert adapter.categorize_batch(SAMPLE_TRANSACTIONS, SAMPLE_CATEGORIES) == []

    def test_unexpected_body_returns_empty(self):
        adapter = self._make_adapter()
        mock_response = _response(200, {"promptFeedback": {"blockReason": "SAFETY"}})
        with (
            patch.dict("os.environ", {"TEST_GEMINI_KEY": "k"}),
            patch("money_analyzer.llm.httpx.post", return_value=mock_response),
        ):
            assert adapter.categorize_batch(SAMPLE_TRANSACTIONS, SAMPLE_CATEGORIES) == []


# ---------------------------------------------------------------------------
# AnthropicAdapter
# ---------------------------------------------------------------------------


class TestAnthropicAdapter:
    """Tests for the AnthropicAdapter with mocked HTTP responses."""

    def test_successful_categorization(self):
        adapter = AnthropicAdapter(model="claude-test", api_key_env="TEST_ANTHROPIC_KEY")
        mock_response = _response(200, _make_anthropic_response(SAMPLE_SUGGESTIONS))
        with (
            patch.dict("os.environ", {"TEST_ANTHROPIC_KEY": "sk-ant-test-key"}),
            patch("money_analyzer.llm.httpx.post", return_value=mock_response) as mock_post,
        ):
            result = adapter.categorize_batch(SAMPLE_TRANSACTIONS, SAMPLE_CATEGORIES)

        assert len(result) == 2
        headers = mock_post.call_args.kwargs["headers"]
        assert headers["x-api-key"] == "sk-ant-test-key"
        assert headers["anthropic-version"] == "2023-06-01"
        body = mock_post.call_args.kwargs["json"]
        assert body["model"] == "claude-test"
        assert body["max_tokens"] == 4096
        assert body["messages"][0]["role"] == "user"

    def test_non_text_blocks_ignored(self):
        adapter = AnthropicAdapter(model="claude-test", api_key_env="TEST_ANTHROPIC_KEY")
        body = _make_anthropic_response(SAMPLE_SUGGESTIONS)
        body["content"].insert(0, {"type": "tool_use", "id": "x", "name": "y", "input": {}})
        with (
            patch.dict("os.environ", {"TEST_ANTHROPIC_KEY": "k"}),
            patch("money_analyzer.llm.httpx.post", return_value=_response(200, body)),
        ):
            assert len(adapter.categorize_batch(SAMPLE_TRANSACTIONS, SAMPLE_CATEGORIES)) == 2


# ---------------------------------------------------------------------------
# NullAdapter and factory
# ---------------------------------------------------------------------------


class TestNullAdapter:
    def test_returns_empty(self):
        assert NullAdapter().categorize_batch(SAMPLE_TRANSACTIONS, SAMPLE_CATEGORIES) == []


class TestMakeAdapter:
    def test_providers(self):
        assert isinstance(make_adapter("gemini", "m", "K"), GeminiAdapter)
        assert isinstance(make_adapter("anthropic", "m", "K"), AnthropicAdapter)
        assert isinstance(make_adapter("none", "m", "K"), NullAdapter)

    def test_unknown_provider_is_null(self):
        assert isinstance(make_adapter("openai", "m", "K"), NullAdapter)

    def test_custom_rules_passed(self):
        rules = [{"pattern": "ACME", "category": "Other", "reason": ""}]
        assert make_adapter("gemini", "m", "K", custom_rules=rules).custom_rules == rules
