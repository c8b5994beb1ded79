"""Configuration loading, writing, and project initialization.

Reads TOML config files using stdlib ``tomllib`` and writes them using
``tomli_w``. Depends only on ``models.py``.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

from money_analyzer.models import AppConfig, CategoryRule

logger = logging.getLogger(__name__)

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 50

_DEFAULT_CONFIG_TOML = """\
# Money Analyzer configuration

[general]
data_file = "money-data.json"   # Snapshot of transactions, categories and balances
currency = "USD"

[matching]
exclusive = false               # true: a bank transaction matches at most one PayPal record

[llm]
provider = "gemini"             # "gemini", "anthropic" or "none"
model = "gemini-2.5-flash-lite"
api_key_env = "GEMINI_API_KEY"  # Name of env var containing the API key
batch_size = 20                 # Transactions per request (1-50)
"""

_DEFAULT_RULES_TOML = """\
# Description-to-category rules
# User rules take precedence over the built-in keyword table.
# Matching: case-insensitive substring.

[user_rules]
# Format: pattern = "Category"

# Examples:
# "ROOMMATE" = "Income Offset"
# "VANGUARD" = "Investment"
"""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(root: Path) -> AppConfig:
    """Load ``config.toml`` from *root* and return an :class:`AppConfig`.

    Missing sections and keys take their defaults. ``batch_size`` is
    clamped to 1..50.

    Raises:
        FileNotFoundError: If ``config.toml`` does not exist.
    """
    data = _read_toml(Path(root) / "config.toml")

    general = data.get("general", {})
    matching = data.get("matching", {})
    llm = data.get("llm", {})
    defaults = AppConfig()

    batch_size = int(llm.get("batch_size", defaults.llm_batch_size))
    clamped = max(MIN_BATCH_SIZE, min(MAX_BATCH_SIZE, batch_size))
    if clamped != batch_size:
        logger.warning("llm.batch_size %d out of range, using %d", batch_size, clamped)

    return AppConfig(
        data_file=general.get("data_file", defaults.data_file),
        currency=general.get("currency", defaults.currency),
        exclusive_matching=bool(matching.get("exclusive", defaults.exclusive_matching)),
        llm_provider=llm.get("provider", defaults.llm_provider),
        llm_model=llm.get("model", defaults.llm_model),
        llm_api_key_env=llm.get("api_key_env", defaults.llm_api_key_env),
        llm_batch_size=clamped,
    )


def load_rules(root: Path) -> list[CategoryRule]:
    """Load the ``[user_rules]`` table of ``rules.toml``.

    Rules keep file order. A missing file means no user rules.
    """
    path = Path(root) / "rules.toml"
    if not path.exists():
        return []
    data = _read_toml(path)
    return [
        CategoryRule(pattern=pattern, category=str(value).strip(), confidence=1.0, source="user")
        for pattern, value in data.get("user_rules", {}).items()
    ]


def save_user_rules(root: Path, rules: list[CategoryRule]) -> None:
    """Rewrite the ``[user_rules]`` table of ``rules.toml``.

    Everything above the table header is preserved. Only rules with
    ``source="user"`` are written.
    """
    rules_path = Path(root) / "rules.toml"
    original_text = rules_path.read_text(encoding="utf-8") if rules_path.exists() else ""

    marker = "[user_rules]"
    idx = original_text.find(marker)
    if idx == -1:
        prefix = original_text.rstrip() + "\n\n" if original_text.strip() else ""
    else:
        prefix = original_text[:idx]

    table = {r.pattern: r.category for r in rules if r.source == "user"}
    # tomli_w emits the header itself, or nothing for an empty table.
    body = tomli_w.dumps({"user_rules": table}) if table else marker + "\n"
    rules_path.write_text(prefix + body, encoding="utf-8")


def initialize(target_dir: Path) -> None:
    """Create the project directory and default config files.

    Idempotent: existing files are **not** overwritten.
    """
    target_dir = Path(target_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    _write_if_missing(target_dir / "config.toml", _DEFAULT_CONFIG_TOML)
    _write_if_missing(target_dir / "rules.toml", _DEFAULT_RULES_TOML)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read_toml(path: Path) -> dict:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _write_if_missing(path: Path, content: str) -> None:
    if not path.exists():
        path.write_text(content, encoding="utf-8")
