"""Tests for money_analyzer.categorizer -- rule matching and LLM fallback."""

from __future__ import annotations

from datetime import date
from unittest.mock import MagicMock

import pytest

from money_analyzer.categories import default_categories
from money_analyzer.categorizer import (
    BUILTIN_RULES,
    categorize,
    clamp_batch_size,
    match_rules,
    with_builtin_rules,
)
from money_analyzer.models import CategoryKind, CategoryRule


class TestMatchRules:
    """Tests for case-insensitive substring rule matching."""

    def test_case_insensitive(self):
        rules = [CategoryRule("coles", "Groceries")]
        assert match_rules("COLES SUPERMARKET 123", rules).category == "Groceries"

    def test_no_match(self):
        assert match_rules("Unknown merchant", [CategoryRule("coles", "Groceries")]) is None

    def test_highest_confidence_wins(self):
        rules = [
            CategoryRule("home", "Home", confidence=0.80),
            CategoryRule("insurance", "Insurance", confidence=0.95),
        ]
        assert match_rules("Home insurance premium", rules).category == "Insurance"

    def test_longer_pattern_breaks_confidence_tie(self):
        rules = [
            CategoryRule("gas", "Transportation", confidence=0.95),
            CategoryRule("gas bill", "Utilities", confidence=0.95),
        ]
        assert match_rules("AGL gas bill", rules).category == "Utilities"

    def test_list_order_breaks_full_tie(self):
        rules = [
            CategoryRule("uber", "Transportation", confidence=0.9),
            CategoryRule("eats", "Dining", confidence=0.9),
        ]
        assert match_rules("uber eats", rules).category == "Transportation"

    def test_user_rules_beat_builtin(self):
        rules = with_builtin_rules([CategoryRule("coles", "Household", source="user")])
        assert match_rules("Coles Express", rules).category == "Household"

    def test_builtin_table(self):
        assert match_rules("Salary ACME PTY", BUILTIN_RULES).category == "Income"
        assert match_rules("NETFLIX.COM", BUILTIN_RULES).category == "Entertainment"
        assert match_rules("Vanguard ETF", BUILTIN_RULES).category == "Investment"


class TestCategorizeRules:
    """Tier 1: rule-based categorization."""

    def test_assigns_categories(self, make_txn):
        txns = [
            make_txn(date(2024, 1, 15), -23.0, "Coles Supermarket"),
            make_txn(date(2024, 1, 16), -9.0, "Mystery merchant"),
        ]
        result = categorize(txns, BUILTIN_RULES, default_categories())
        assert txns[0].category.name == "Groceries"
        assert txns[0].category.kind is CategoryKind.EXPENSE
        assert txns[1].category is None
        assert result.warnings == ["1 transaction(s) left uncategorized"]

    def test_existing_category_kept(self, make_txn):
        txn = make_txn(date(2024, 1, 15), -23.0, "Coles", "Shopping")
        categorize([txn], BUILTIN_RULES, default_categories())
        assert txn.category.name == "Shopping"

    def test_overwrite(self, make_txn):
        txn = make_txn(date(2024, 1, 15), -23.0, "Coles", "Shopping")
        categorize([txn], BUILTIN_RULES, default_categories(), overwrite=True)
        assert txn.category.name == "Groceries"

    def test_special_labels_parsed(self, make_txn):
        txn = make_txn(date(2024, 1, 15), -300.0, "Roommate transfer")
        rules = [CategoryRule("roommate", "income offset")]
        categorize([txn], rules, default_categories())
        assert txn.category.kind is CategoryKind.INCOME_OFFSET
        assert txn.category.name == "Income Offset"


class TestCategorizeLLM:
    """Tier 2: LLM fallback for uncategorized transactions."""

    def test_llm_fills_remaining(self, make_txn):
        txns = [
            make_txn(date(2024, 1, 15), -23.0, "Coles"),
            make_txn(date(2024, 1, 16), -60.0, "ACME PTY LTD"),
        ]
        adapter = MagicMock()
        adapter.categorize_batch.return_value = [
            {"index": 1, "category": "shopping", "confidence": 0.8, "reason": "retailer"}
        ]
        result = categorize(txns, BUILTIN_RULES, default_categories(), llm_adapter=adapter)

        sent, categories = adapter.categorize_batch.call_args.args
        assert len(sent) == 1
        assert sent[0] == {
            "index": 1,
            "description": "ACME PTY LTD",
            "amount": "60.00",
            "type": "Expense",
        }
        assert {"name": "Groceries", "description": "Food and household essentials"} in categories
        assert txns[1].category.name == "Shopping"
        assert result.warnings == []

    def test_unknown_category_ignored(self, make_txn):
        txn = make_txn(date(2024, 1, 16), -60.0, "ACME")
        adapter = MagicMock()
        adapter.categorize_batch.return_value = [{"index": 1, "category": "Spaceships"}]
        result = categorize([txn], [], default_categories(), llm_adapter=adapter)
        assert txn.category is None
        assert any("Spaceships" in w for w in result.warnings)

    def test_out_of_range_index_ignored(self, make_txn):
        txn = make_txn(date(2024, 1, 16), -60.0, "ACME")
        adapter = MagicMock()
        adapter.categorize_batch.return_value = [{"index": 7, "category": "Shopping"}]
        categorize([txn], [], default_categories(), llm_adapter=adapter)
        assert txn.category is None

    def test_batching(self, make_txn):
        txns = [make_txn(date(2024, 1, i), -float(i), f"Merchant {i}") for i in range(1, 6)]
        adapter = MagicMock()
        adapter.categorize_batch.return_value = []
        categorize(txns, [], default_categories(), llm_adapter=adapter, batch_size=2)
        sizes = [len(call.args[0]) for call in adapter.categorize_batch.call_args_list]
        assert sizes == [2, 2, 1]

    def test_adapter_exception_is_error(self, make_txn):
        txn = make_txn(date(2024, 1, 16), -60.0, "ACME")
        adapter = MagicMock()
        adapter.categorize_batch.side_effect = RuntimeError("boom")
        result = categorize([txn], [], default_categories(), llm_adapter=adapter)
        assert result.errors == ["LLM categorization failed for transactions 1-1: boom"]
        assert result.warnings == ["1 transaction(s) left uncategorized"]
        assert txn.category is None

    def test_paypal_context_sent(self, make_record, make_txn):
        from money_analyzer.matcher import apply_match
        from money_analyzer.models import Match

        txn = make_txn(date(2024, 1, 20), -45.99, "PAYPAL *A1B2")
        record = make_record(date(2024, 1, 20), -45.99)
        record.item_title = "Premium"
        apply_match(Match(txn, record, 1.0, ""))
        adapter = MagicMock()
        adapter.categorize_batch.return_value = []
        categorize([txn], [], default_categories(), llm_adapter=adapter)
        sent = adapter.categorize_batch.call_args.args[0][0]
        assert sent["paypal"] == "Spotify (Express Checkout Payment)"
        assert sent["item"] == "Premium"


@pytest.mark.parametrize("size,expected", [(0, 1), (20, 20), (500, 50)])
def test_clamp_batch_size(size, expected):
    assert clamp_batch_size(size) == expected
