"""LLM adapter interface plus Gemini and Anthropic implementations.

Three adapters satisfy LLMAdapter. GeminiAdapter posts to the Google
Generative Language API and AnthropicAdapter to the Messages API, both
through httpx. NullAdapter never suggests anything.

Request items are plain dicts with keys ``index`` (1-based within the
batch), ``description``, ``amount`` (absolute, 2dp string), ``type``
(``"Income"`` or ``"Expense"``) and optionally ``paypal`` and ``item``.
Responses are dicts with ``index``, ``category``, ``confidence`` and
``reason``.

Nothing here imports from money_analyzer; the categorizer hands over plain
dicts built from its transactions.
"""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"
GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

MIN_CONFIDENCE = 0.5
DEFAULT_CONFIDENCE = 0.7

_FENCE_RE = re.compile(r"```(?:json)?\s*(\[[\s\S]*?\])\s*```")


class LLMAdapter(Protocol):
    """Suggests categories for a batch of transaction dicts.

    A failed call yields an empty list; adapters never raise.
    """

    def categorize_batch(
        self,
        transactions: list[dict],
        categories: list[dict],
    ) -> list[dict]:
        """Ask the model for one category per transaction in the batch.

        Args:
            transactions: List of dicts, each with keys:
                index, description, amount, type (and optionally paypal, item).
            categories: List of dicts, each with keys:
                name (str), description (str).

        Returns:
            List of dicts, each with keys: index, category, confidence, reason.
            An empty list when the call fails.
        """
        ...


def _format_transaction(txn: dict) -> str:
    sign = "+" if txn.get("type") == "Income" else "-"
    line = (
        f'{txn["index"]}. Description: "{txn["description"]}" | '
        f'Amount: {sign}${txn["amount"]} | Type: {txn.get("type", "Expense")}'
    )
    if txn.get("paypal"):
        line += f" | PayPal: {txn['paypal']}"
    if txn.get("item"):
        line += f" | Item: {txn['item']}"
    return line


def _build_prompt(
    transactions: list[dict],
    categories: list[dict],
    custom_rules: list[dict] | None = None,
) -> str:
    """Construct the batch categorization prompt.

    The prompt lists the available categories with their descriptions, the
    user's own pattern preferences (if any), the numbered transactions, and
    the exact JSON array format expected back.

    Args:
        transactions: Transaction dicts as described in the module docstring.
        categories: Category dicts with name and description.
        custom_rules: Optional ``{"pattern", "category", "reason"}`` dicts
            from the user's rules file.

    Returns:
        The fully formatted prompt string.
    """
    names = ", ".join(cat["name"] for cat in categories)
    rule_lines = "\n".join(
        f'- Use "{cat["name"]}" for {(cat.get("description") or "general category").lower()}'
        for cat in categories
    )
    txn_text = "\n".join(_format_transaction(t) for t in transactions)

    custom_section = ""
    if custom_rules:
        custom_lines = "\n".join(
            f'- If description contains "{r["pattern"]}", prefer "{r["category"]}"'
            + (f" ({r['reason']})" if r.get("reason") else "")
            for r in custom_rules
        )
        custom_section = (
            "\n\n## User Preferences\n"
            f"{custom_lines}\n"
            "(Apply similar logic to similar transactions even if they don't match exactly.)"
        )

    return (
        "You are a financial transaction categorization assistant. Categorize each\n"
        "transaction below using one of the available categories.\n"
        "\n"
        "## Transactions\n"
        f"{txn_text}\n"
        "\n"
        "## Available Categories\n"
        f"{names}\n"
        "\n"
        "## Categorization Rules\n"
        f"{rule_lines}"
        f"{custom_section}\n"
        "\n"
        "## Response Format\n"
        "Return ONLY a JSON array, one element per transaction:\n"
        '{"index": 1, "category": "...", "confidence": 0.95, "reason": "brief explanation"}\n'
        "\n"
        "Confidence must be between 0.5 and 1.0."
    )


def _parse_response(text: str) -> list[dict]:
    """Pull the suggestion array out of a model reply.

    Replies often carry prose or markdown fences around the array. A fenced block is preferred; otherwise the text from
    the first '[' to the last ']' is used.

    Args:
        text: Raw text from the LLM response.

    Returns:
        Parsed list of suggestion dicts, or empty list if parsing fails.
    """
    fenced = _FENCE_RE.search(text)
    if fenced:
        json_str = fenced.group(1)
    else:
        start = text.find("[")
        end = text.rfind("]")
        if start == -1 or end == -1 or end <= start:
            logger.warning("LLM response does not contain a JSON array")
            return []
        json_str = text[start : end + 1]

    try:
        result = json.loads(json_str)
    except json.JSONDecodeError as exc:
        logger.warning("Failed to parse JSON from LLM response: %s", exc)
        return []

    if not isinstance(result, list):
        logger.warning("LLM response JSON is not a list")
        return []

    validated: list[dict] = []
    for item in result:
        if not isinstance(item, dict):
            logger.warning("Skipping non-dict item in LLM response: %s", item)
            continue
        if "index" not in item or "category" not in item:
            logger.warning("Skipping item missing required keys: %s", item)
            continue
        try:
            index = int(item["index"])
        except (TypeError, ValueError):
            logger.warning("Skipping item with non-integer index: %s", item)
            continue
        try:
            confidence = float(item.get("confidence", DEFAULT_CONFIDENCE))
        except (TypeError, ValueError):
            confidence = DEFAULT_CONFIDENCE
        validated.append(
            {
                "index": index,
                "category": str(item["category"]),
                "confidence": max(MIN_CONFIDENCE, min(1.0, confidence)),
                "reason": str(item.get("reason") or "AI categorization"),
            }
        )

    return validated


def _post(url: str, body: dict, headers: dict, timeout: float) -> dict | None:
    """POST *body* as JSON and return the decoded response, or None on failure."""
    try:
        response = httpx.post(url, json=body, headers=headers, timeout=timeout)
        response.raise_for_status()
    except httpx.TimeoutException:
        logger.warning("LLM request timed out")
        return None
    except httpx.HTTPStatusError as exc:
        logger.warning(
            "LLM API returned HTTP %d: %s",
            exc.response.status_code,
            exc.response.text[:200],
        )
        return None
    except httpx.HTTPError as exc:
        logger.warning("LLM request failed: %s", exc)
        return None

    try:
        return response.json()
    except json.JSONDecodeError as exc:
        logger.warning("LLM response is not JSON: %s", exc)
        return None


class _HTTPAdapter:
    """Shared key lookup and prompt handling for the HTTP adapters."""

    def __init__(
        self,
        model: str,
        api_key_env: str,
        custom_rules: list[dict] | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.model = model
        self.api_key_env = api_key_env
        self.custom_rules = custom_rules or []
        self.timeout = timeout

    def _api_key(self) -> str:
        api_key = os.environ.get(self.api_key_env, "")
        if not api_key:
            logger.warning(
                "LLM API key not found in environment variable '%s'",
                self.api_key_env,
            )
        return api_key

    def categorize_batch(
        self,
        transactions: list[dict],
        categories: list[dict],
    ) -> list[dict]:
        if not transactions:
            return []
        api_key = self._api_key()
        if not api_key:
            return []
        prompt = _build_prompt(transactions, categories, self.custom_rules)
        text = self._complete(prompt, api_key)
        if not text:
            logger.warning("LLM response contained no text content")
            return []
        return _parse_response(text)

    def _complete(self, prompt: str, api_key: str) -> str:
        raise NotImplementedError


class GeminiAdapter(_HTTPAdapter):
    """LLM adapter that calls the Gemini ``generateContent`` REST endpoint.

    Google Search grounding is enabled so the model can look up unfamiliar
    merchants. On any failure (missing API key, network error, HTTP error,
    unparseable response) the adapter returns an empty list.

    Args:
        model: Gemini model identifier, e.g. "gemini-2.5-flash-lite".
        api_key_env: Name of the environment variable containing the API key.
        custom_rules: User pattern preferences included in every prompt.
        timeout: HTTP request timeout in seconds. Default: 60.
    """

    def _complete(self, prompt: str, api_key: str) -> str:
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "tools": [{"google_search": {}}],
        }
        headers = {"x-goog-api-key": api_key, "content-type": "application/json"}
        data = _post(GEMINI_API_URL.format(model=self.model), body, headers, self.timeout)
        if data is None:
            return ""
        try:
            parts = data["candidates"][0]["content"]["parts"]
            return "\n".join(p["text"] for p in parts if "text" in p)
        except (KeyError, IndexError, TypeError) as exc:
            logger.warning("Failed to extract text from LLM response: %s", exc)
            return ""


class AnthropicAdapter(_HTTPAdapter):
    """LLM adapter that calls the Anthropic Messages API via httpx.

    Args:
        model: The Anthropic model identifier.
        api_key_env: Name of the environment variable containing the API key.
        custom_rules: User pattern preferences included in every prompt.
        timeout: HTTP request timeout in seconds. Default: 60.
        max_tokens: Maximum tokens in the LLM response. Default: 4096.
    """

    def __init__(
        self,
        model: str,
        api_key_env: str,
        custom_rules: list[dict] | None = None,
        timeout: float = 60.0,
        max_tokens: int = 4096,
    ) -> None:
        super().__init__(model, api_key_env, custom_rules, timeout)
        self.max_tokens = max_tokens

    def _complete(self, prompt: str, api_key: str) -> str:
        body = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }
        data = _post(ANTHROPIC_API_URL, body, headers, self.timeout)
        if data is None:
            return ""
        try:
            return "\n".join(
                block["text"] for block in data.get("content", []) if block.get("type") == "text"
            )
        except (KeyError, TypeError, AttributeError) as exc:
            logger.warning("Failed to extract text from LLM response: %s", exc)
            return ""


class NullAdapter:
    """Adapter used with `money categorize --no-llm` or `provider = "none"`."""

    def categorize_batch(
        self,
        transactions: list[dict],
        categories: list[dict],
    ) -> list[dict]:
        return []


def make_adapter(
    provider: str,
    model: str,
    api_key_env: str,
    custom_rules: list[dict] | None = None,
) -> LLMAdapter:
    """Build the adapter for a configured provider name.

    Unknown providers and ``"none"`` yield a :class:`NullAdapter`.
    """
    if provider == "gemini":
        return GeminiAdapter(model=model, api_key_env=api_key_env, custom_rules=custom_rules)
    if provider == "anthropic":
        return AnthropicAdapter(model=model, api_key_env=api_key_env, custom_rules=custom_rules)
    if provider != "none":
        logger.warning("Unknown LLM provider %r, LLM categorization disabled", provider)
    return NullAdapter()
