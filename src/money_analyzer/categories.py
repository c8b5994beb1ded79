"""Category taxonomy, label classification, and chart colors.

The default taxonomy mirrors what a fresh project starts with. Labels found
on transactions are converted to :class:`~money_analyzer.models.CategoryLabel`
by :func:`parse_category`, which is the only place where the special strings
``"Income"``, ``"Investment"`` and ``"Income Offset"`` are interpreted.
"""

from __future__ import annotations

from money_analyzer.models import (
    INCOME_LABEL,
    INCOME_OFFSET_LABEL,
    INVESTMENT_LABEL,
    CategoryConfig,
    CategoryKind,
    CategoryLabel,
    fnv1a_32,
)

DEFAULT_CATEGORIES: list[CategoryConfig] = [
    CategoryConfig("income", "Income", "#10B981", "Salary, wages, and other income sources"),
    CategoryConfig("groceries", "Groceries", "#3B82F6", "Food and household essentials"),
    CategoryConfig("dining", "Dining", "#F59E0B", "Restaurants, takeout, and dining out"),
    CategoryConfig("transportation", "Transportation", "#8B5CF6", "Gas, public transport, car maintenance"),
    CategoryConfig("shopping", "Shopping", "#EC4899", "Clothing, electronics, and general purchases"),
    CategoryConfig("entertainment", "Entertainment", "#06B6D4", "Movies, games, and recreational activities"),
    CategoryConfig("utilities", "Utilities", "#84CC16", "Electricity, water, gas, internet"),
    CategoryConfig("healthcare", "Healthcare", "#EF4444", "Medical expenses, prescriptions, insurance"),
    CategoryConfig("insurance", "Insurance", "#F97316", "Health, car, home, and other insurance"),
    CategoryConfig("education", "Education", "#6366F1", "Tuition, books, courses, and learning"),
    CategoryConfig("travel", "Travel", "#14B8A6", "Flights, hotels, and vacation expenses"),
    CategoryConfig("home", "Home", "#A855F7", "Rent, mortgage, furniture, and home improvement"),
    CategoryConfig("personal-care", "Personal Care", "#F43F5E", "Haircuts, cosmetics, and personal services"),
    CategoryConfig("gifts", "Gifts", "#EAB308", "Presents and gift-giving expenses"),
    CategoryConfig("subscriptions", "Subscriptions", "#22C55E", "Monthly services and recurring payments"),
    CategoryConfig("investment", "Investment", "#059669", "Stocks, bonds, retirement contributions"),
    CategoryConfig("donations", "Donations", "#DC2626", "Charitable giving and donations"),
    CategoryConfig("income-offset", "Income Offset", "#16A34A", "Roommate payments that offset housing costs"),
    CategoryConfig("other", "Other", "#6B7280", "Miscellaneous expenses"),
]

# Colors for categories outside the default taxonomy, indexed by FNV-1a hash.
FALLBACK_COLORS: list[str] = [
    "#3B82F6",  # blue
    "#EF4444",  # red
    "#10B981",  # green
    "#F59E0B",  # yellow
    "#8B5CF6",  # purple
    "#F97316",  # orange
    "#06B6D4",  # cyan
    "#84CC16",  # lime
    "#EC4899",  # pink
    "#6B7280",  # gray
    "#14B8A6",  # teal
    "#F43F5E",  # rose
    "#6366F1",  # indigo
    "#A855F7",  # violet
    "#EAB308",  # amber
    "#22C55E",  # emerald
]

_SPECIAL_KINDS: dict[str, CategoryKind] = {
    INCOME_LABEL.lower(): CategoryKind.INCOME,
    INVESTMENT_LABEL.lower(): CategoryKind.INVESTMENT,
    INCOME_OFFSET_LABEL.lower(): CategoryKind.INCOME_OFFSET,
}


def default_categories() -> list[CategoryConfig]:
    """Return a fresh copy of the default taxonomy."""
    return [
        CategoryConfig(c.id, c.name, c.color, c.description) for c in DEFAULT_CATEGORIES
    ]


def get_category_config(identifier: str) -> CategoryConfig | None:
    """Look up a default category by name or id, case-insensitively."""
    key = identifier.strip().lower()
    for cat in DEFAULT_CATEGORIES:
        if cat.name.lower() == key or cat.id == key:
            return cat
    return None


def parse_category(label: str | None) -> CategoryLabel | None:
    """Convert a serialized category string into a :class:`CategoryLabel`.

    Empty or missing labels mean "uncategorized" and return None. The three
    special labels are recognized case-insensitively and normalized to their
    canonical spelling. Other default taxonomy names become
    ``CategoryKind.EXPENSE``; anything else is ``CategoryKind.CUSTOM`` with
    the label kept verbatim (stripped).
    """
    if label is None:
        return None
    name = label.strip()
    if not name:
        return None

    kind = _SPECIAL_KINDS.get(name.lower())
    if kind is CategoryKind.INCOME:
        return CategoryLabel(kind, INCOME_LABEL)
    if kind is CategoryKind.INVESTMENT:
        return CategoryLabel(kind, INVESTMENT_LABEL)
    if kind is CategoryKind.INCOME_OFFSET:
        return CategoryLabel(kind, INCOME_OFFSET_LABEL)

    config = get_category_config(name)
    if config is not None:
        return CategoryLabel(CategoryKind.EXPENSE, config.name)
    return CategoryLabel(CategoryKind.CUSTOM, name)


def category_color(name: str) -> str:
    """Return the chart color for a category name.

    Default categories use their fixed color. Any other name is hashed with
    FNV-1a into :data:`FALLBACK_COLORS`, so a recurring custom category
    always renders in the same color.
    """
    config = get_category_config(name)
    if config is not None:
        return config.color
    return FALLBACK_COLORS[fnv1a_32(name) % len(FALLBACK_COLORS)]
