"""Categorization engine: pattern rules with LLM fallback.

Two tiers, applied in order:

1. **Tier 1 -- Rule matching:** Case-insensitive substring matching of rule
   patterns against the transaction description. The highest-confidence
   rule wins; ties go to the longer pattern, then to list order. User rules
   from ``rules.toml`` carry confidence 1.0 and come first, so they beat
   the built-in keyword table.

2. **Tier 2 -- LLM fallback:** Still-uncategorized transactions are sent in
   batches to an adapter conforming to
   :class:`~money_analyzer.llm.LLMAdapter`. Suggestions naming a category
   outside the known list are ignored.

LLM failures never raise. A batch whose adapter call fails is recorded in
``errors``; ignored suggestions and leftovers are ``warnings``.
"""

from __future__ import annotations

from collections.abc import Sequence

from money_analyzer.categories import parse_category
from money_analyzer.llm import LLMAdapter
from money_analyzer.models import CategoryConfig, CategoryRule, StageResult, Transaction

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 50


def _rule(pattern: str, category: str, confidence: float, reason: str) -> CategoryRule:
    return CategoryRule(pattern, category, confidence, reason, source="builtin")


BUILTIN_RULES: list[CategoryRule] = [
    # Income
    _rule("salary", "Income", 0.95, "Salary payment"),
    _rule("deposit", "Income", 0.80, "Bank deposit"),
    _rule("refund", "Income", 0.85, "Refund payment"),
    _rule("transfer in", "Income", 0.70, "Incoming transfer"),
    # Groceries
    _rule("coles", "Groceries", 0.95, "Supermarket purchase"),
    _rule("woolworths", "Groceries", 0.95, "Supermarket purchase"),
    _rule("aldi", "Groceries", 0.95, "Supermarket purchase"),
    _rule("iga", "Groceries", 0.90, "Supermarket purchase"),
    _rule("food", "Groceries", 0.85, "Food-related purchase"),
    _rule("grocery", "Groceries", 0.90, "Grocery store"),
    _rule("supermarket", "Groceries", 0.95, "Supermarket purchase"),
    # Dining
    _rule("restaurant", "Dining", 0.90, "Restaurant dining"),
    _rule("cafe", "Dining", 0.85, "Cafe visit"),
    _rule("mcdonalds", "Dining", 0.95, "Fast food"),
    _rule("kfc", "Dining", 0.95, "Fast food"),
    _rule("subway", "Dining", 0.95, "Fast food"),
    _rule("pizza", "Dining", 0.80, "Pizza purchase"),
    _rule("dinner", "Dining", 0.85, "Dinner out"),
    _rule("lunch", "Dining", 0.85, "Lunch out"),
    _rule("burger", "Dining", 0.80, "Fast food"),
    # Transportation
    _rule("uber", "Transportation", 0.95, "Ride sharing"),
    _rule("taxi", "Transportation", 0.90, "Taxi service"),
    _rule("petrol", "Transportation", 0.95, "Fuel purchase"),
    _rule("gas", "Transportation", 0.95, "Fuel purchase"),
    _rule("fuel", "Transportation", 0.95, "Fuel purchase"),
    _rule("parking", "Transportation", 0.90, "Parking fee"),
    _rule("toll", "Transportation", 0.95, "Road toll"),
    _rule("public transport", "Transportation", 0.90, "Public transport"),
    _rule("bus", "Transportation", 0.85, "Bus fare"),
    _rule("train", "Transportation", 0.85, "Train fare"),
    # Shopping
    _rule("amazon", "Shopping", 0.90, "Online shopping"),
    _rule("ebay", "Shopping", 0.90, "Online shopping"),
    _rule("target", "Shopping", 0.85, "Retail shopping"),
    _rule("kmart", "Shopping", 0.85, "Retail shopping"),
    _rule("big w", "Shopping", 0.85, "Retail shopping"),
    _rule("myer", "Shopping", 0.85, "Department store"),
    _rule("david jones", "Shopping", 0.85, "Department store"),
    _rule("online shopping", "Shopping", 0.85, "Online purchase"),
    _rule("retail", "Shopping", 0.80, "Retail purchase"),
    # Entertainment
    _rule("netflix", "Entertainment", 0.95, "Streaming service"),
    _rule("spotify", "Entertainment", 0.95, "Music streaming"),
    _rule("youtube", "Entertainment", 0.90, "Video streaming"),
    _rule("disney", "Entertainment", 0.95, "Streaming service"),
    _rule("cinema", "Entertainment", 0.90, "Movie theater"),
    _rule("movie", "Entertainment", 0.85, "Movie purchase"),
    _rule("game", "Entertainment", 0.85, "Gaming purchase"),
    _rule("streaming", "Entertainment", 0.85, "Streaming service"),
    # Utilities
    _rule("electricity", "Utilities", 0.95, "Electricity bill"),
    _rule("gas bill", "Utilities", 0.95, "Gas bill"),
    _rule("water", "Utilities", 0.95, "Water bill"),
    _rule("internet", "Utilities", 0.95, "Internet service"),
    _rule("phone", "Utilities", 0.90, "Phone bill"),
    _rule("mobile", "Utilities", 0.90, "Mobile service"),
    _rule("utility", "Utilities", 0.85, "Utility bill"),
    # Healthcare
    _rule("pharmacy", "Healthcare", 0.90, "Pharmacy purchase"),
    _rule("chemist", "Healthcare", 0.90, "Pharmacy purchase"),
    _rule("doctor", "Healthcare", 0.85, "Medical appointment"),
    _rule("dental", "Healthcare", 0.90, "Dental care"),
    _rule("medical", "Healthcare", 0.85, "Medical expense"),
    _rule("health", "Healthcare", 0.80, "Health-related expense"),
    # Insurance
    _rule("insurance", "Insurance", 0.95, "Insurance payment"),
    _rule("car insurance", "Insurance", 0.95, "Car insurance"),
    _rule("health insurance", "Insurance", 0.95, "Health insurance"),
    _rule("life insurance", "Insurance", 0.95, "Life insurance"),
    _rule("home insurance", "Insurance", 0.95, "Home insurance"),
    # Education
    _rule("course", "Education", 0.90, "Educational course"),
    _rule("book", "Education", 0.80, "Educational book"),
    _rule("training", "Education", 0.85, "Training program"),
    _rule("school", "Education", 0.85, "School expense"),
    _rule("university", "Education", 0.85, "University expense"),
    _rule("education", "Education", 0.80, "Educational expense"),
    # Travel
    _rule("flight", "Travel", 0.95, "Flight booking"),
    _rule("hotel", "Travel", 0.95, "Hotel booking"),
    _rule("airbnb", "Travel", 0.95, "Accommodation"),
    _rule("vacation", "Travel", 0.90, "Vacation expense"),
    _rule("travel", "Travel", 0.85, "Travel expense"),
    _rule("booking", "Travel", 0.80, "Travel booking"),
    # Home
    _rule("furniture", "Home", 0.90, "Furniture purchase"),
    _rule("repair", "Home", 0.85, "Home repair"),
    _rule("maintenance", "Home", 0.85, "Home maintenance"),
    _rule("home", "Home", 0.80, "Home-related expense"),
    _rule("house", "Home", 0.80, "House-related expense"),
    _rule("renovation", "Home", 0.90, "Home renovation"),
    # Personal care
    _rule("beauty", "Personal Care", 0.85, "Beauty product"),
    _rule("gym", "Personal Care", 0.90, "Gym membership"),
    _rule("wellness", "Personal Care", 0.80, "Wellness expense"),
    _rule("spa", "Personal Care", 0.85, "Spa treatment"),
    _rule("salon", "Personal Care", 0.85, "Hair salon"),
    _rule("fitness", "Personal Care", 0.85, "Fitness expense"),
    # Gifts
    _rule("gift", "Gifts", 0.85, "Gift purchase"),
    _rule("present", "Gifts", 0.85, "Gift purchase"),
    # Investment
    _rule("investment", "Investment", 0.95, "Investment transaction"),
    _rule("stock", "Investment", 0.95, "Stock purchase"),
    _rule("bond", "Investment", 0.95, "Bond purchase"),
    _rule("crypto", "Investment", 0.95, "Cryptocurrency transaction"),
    _rule("bitcoin", "Investment", 0.95, "Bitcoin transaction"),
    _rule("ethereum", "Investment", 0.95, "Ethereum transaction"),
    _rule("trading", "Investment", 0.90, "Trading transaction"),
    _rule("broker", "Investment", 0.90, "Brokerage transaction"),
    _rule("portfolio", "Investment", 0.85, "Portfolio transaction"),
    _rule("fund", "Investment", 0.90, "Investment fund"),
    _rule("etf", "Investment", 0.95, "ETF transaction"),
    _rule("mutual fund", "Investment", 0.95, "Mutual fund transaction"),
    # Donations
    _rule("donation", "Donations", 0.95, "Charitable donation"),
    _rule("charity", "Donations", 0.95, "Charitable donation"),
    _rule("charitable", "Donations", 0.90, "Charitable giving"),
    _rule("foundation", "Donations", 0.90, "Foundation donation"),
    _rule("ngo", "Donations", 0.90, "NGO donation"),
    _rule("nonprofit", "Donations", 0.90, "Nonprofit donation"),
    _rule("red cross", "Donations", 0.95, "Red Cross donation"),
    _rule("unicef", "Donations", 0.95, "UNICEF donation"),
    _rule("world vision", "Donations", 0.95, "World Vision donation"),
    _rule("salvation army", "Donations", 0.95, "Salvation Army donation"),
    # Subscriptions
    _rule("subscription", "Subscriptions", 0.90, "Subscription service"),
    _rule("monthly", "Subscriptions", 0.80, "Monthly subscription"),
    _rule("recurring", "Subscriptions", 0.85, "Recurring service"),
    _rule("membership", "Subscriptions", 0.85, "Membership fee"),
]


# ---------------------------------------------------------------------------
# Rule matching
# ---------------------------------------------------------------------------


def match_rules(description: str, rules: Sequence[CategoryRule]) -> CategoryRule | None:
    """Find the best matching rule for a description.

    Strategy: case-insensitive substring match. Among all matching rules
    the highest confidence wins, then the longest pattern; remaining ties
    are broken by list order.

    Args:
        description: The transaction description.
        rules: Rules in priority order (user rules first).

    Returns:
        The best-matching rule, or None if no rule matches.
    """
    text = description.lower()
    best: CategoryRule | None = None
    for rule in rules:
        pattern = rule.pattern.lower()
        if not pattern or pattern not in text:
            continue
        if best is None or (rule.confidence, len(rule.pattern)) > (
            best.confidence,
            len(best.pattern),
        ):
            best = rule
    return best


def with_builtin_rules(user_rules: Sequence[CategoryRule]) -> list[CategoryRule]:
    """User rules followed by the built-in keyword table."""
    return [*user_rules, *BUILTIN_RULES]


# ---------------------------------------------------------------------------
# Categorize
# ---------------------------------------------------------------------------


def _batch_item(index: int, txn: Transaction) -> dict:
    item = {
        "index": index,
        "description": txn.description,
        "amount": f"{abs(txn.money):.2f}",
        "type": "Income" if txn.is_income else "Expense",
    }
    paypal = txn.secondary_source_data
    if paypal is not None:
        item["paypal"] = f"{paypal.name} ({paypal.type})"
        if paypal.item_title:
            item["item"] = paypal.item_title
    return item


def clamp_batch_size(size: int) -> int:
    return max(MIN_BATCH_SIZE, min(MAX_BATCH_SIZE, size))


def categorize(
    transactions: list[Transaction],
    rules: Sequence[CategoryRule],
    categories: Sequence[CategoryConfig],
    llm_adapter: LLMAdapter | None = None,
    overwrite: bool = False,
    batch_size: int = 20,
) -> StageResult:
    """Categorize transactions using rule matching and optional LLM fallback.

    1. **Rule matching** -- each eligible transaction gets the category of
       its best matching rule.
    2. **LLM fallback** -- transactions still without a category are sent
       to *llm_adapter* in batches of *batch_size* (clamped to 1..50).
    3. Anything left stays uncategorized and is counted in a warning.

    Args:
        transactions: Transactions to categorize, modified in place.
        rules: Rules in priority order, typically
            :func:`with_builtin_rules` applied to the user's rules.
        categories: Known categories; LLM suggestions must name one.
        llm_adapter: Adapter for tier 2, or None to skip it.
        overwrite: Re-categorize transactions that already have a category.
        batch_size: Transactions per LLM request.

    Returns:
        A StageResult with all transactions. ``errors`` names batches the
        adapter failed on; ``warnings`` covers ignored suggestions and the
        uncategorized count.
    """
    warnings: list[str] = []
    errors: list[str] = []

    # Pass 1: Rule matching
    pending: list[Transaction] = []
    for txn in transactions:
        if txn.category is not None and not overwrite:
            continue
        rule = match_rules(txn.description, rules)
        if rule is not None:
            txn.category = parse_category(rule.category)
        else:
            pending.append(txn)

    # Pass 2: LLM fallback for remaining uncategorized
    if pending and llm_adapter is not None:
        known = {c.name.lower(): c.name for c in categories}
        category_dicts = [{"name": c.name, "description": c.description} for c in categories]
        size = clamp_batch_size(batch_size)

        for start in range(0, len(pending), size):
            batch = pending[start : start + size]
            items = [_batch_item(i, txn) for i, txn in enumerate(batch, start=1)]

            try:
                suggestions = llm_adapter.categorize_batch(items, category_dicts)
            except Exception as exc:
                errors.append(
                    f"LLM categorization failed for transactions "
                    f"{start + 1}-{start + len(batch)}: {exc}"
                )
                continue

            for suggestion in suggestions:
                idx = suggestion.get("index")
                if not isinstance(idx, int) or not 1 <= idx <= len(batch):
                    continue
                name = known.get(str(suggestion.get("category", "")).strip().lower())
                if name is None:
                    warnings.append(
                        f"LLM suggested unknown category {suggestion.get('category')!r} "
                        f"for {batch[idx - 1].description!r}"
                    )
                    continue
                batch[idx - 1].category = parse_category(name)

    remaining = sum(1 for txn in pending if txn.category is None)
    if remaining:
        warnings.append(f"{remaining} transaction(s) left uncategorized")

    return StageResult(transactions=transactions, warnings=warnings, errors=errors)
