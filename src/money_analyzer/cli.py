"""Click CLI entry point for the ``money`` command.

Handles argument parsing, config loading, snapshot round-tripping and error
display. Every command that touches data loads the snapshot into an
:class:`~money_analyzer.state.AppState`, operates on it, and saves it back.
Business logic lives in the other modules.
"""

from __future__ import annotations

import logging
import sys
from datetime import date, datetime
from pathlib import Path

import click

from money_analyzer import __version__
from money_analyzer.exceptions import MoneyAnalyzerError
from money_analyzer.models import AppConfig
from money_analyzer.state import IMPORT_MODES, AppState
from money_analyzer.timefilter import TimePeriod

_DATE = click.DateTime(formats=["%Y-%m-%d"])


def _configure_logging(verbose: bool, debug: bool) -> None:
    """Set up logging based on verbosity flags."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        force=True,
    )


def _load_config(root: Path) -> AppConfig:
    from money_analyzer.config import load_config

    try:
        return load_config(root)
    except FileNotFoundError as exc:
        click.echo(
            f"Error: {exc}. Run 'money init' to create the project files.",
            err=True,
        )
        sys.exit(1)
    except Exception as exc:
        click.echo(f"Error loading configuration: {exc}", err=True)
        sys.exit(1)


def _load_state(root: Path, config: AppConfig) -> AppState:
    from money_analyzer.storage import load_snapshot

    try:
        state = load_snapshot(root / config.data_file)
    except MoneyAnalyzerError as exc:
        click.echo(f"Error loading data: {exc}", err=True)
        sys.exit(1)
    return state if state is not None else AppState()


def _save_state(root: Path, config: AppConfig, state: AppState) -> None:
    from money_analyzer.storage import save_snapshot

    try:
        save_snapshot(root / config.data_file, state)
    except OSError as exc:
        click.echo(f"Error saving data: {exc}", err=True)
        sys.exit(1)


def _verbosity(f):
    f = click.option("--debug", is_flag=True, default=False, help="Developer-level diagnostics.")(f)
    f = click.option("--verbose", is_flag=True, default=False, help="Detailed progress output.")(f)
    return f


@click.group()
@click.version_option(version=__version__, prog_name="money-analyzer")
def cli() -> None:
    """Personal finance analysis over bank and PayPal CSV exports."""


@cli.command()
@click.option(
    "--dir", "target_dir", default=".", type=click.Path(), help="Directory to initialize."
)
def init(target_dir: str) -> None:
    """Create config.toml and rules.toml in a project directory."""
    from money_analyzer.config import initialize

    target = Path(target_dir).resolve()

    try:
        initialize(target)
    except Exception as exc:
        click.echo(f"Error initializing project: {exc}", err=True)
        sys.exit(1)

    click.echo(f"Initialized money analyzer project in {target}")


@cli.command(name="import")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--replace", is_flag=True, default=False, help="Discard existing transactions.")
@_verbosity
def import_(csv_file: str, replace: bool, verbose: bool, debug: bool) -> None:
    """Import a bank CSV (date, amount, description; no header)."""
    _configure_logging(verbose, debug)
    root = Path.cwd()
    config = _load_config(root)

    from money_analyzer.parsers import bank

    try:
        parsed = bank.parse(Path(csv_file))
    except MoneyAnalyzerError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    state = _load_state(root, config)
    result = state.import_transactions(
        parsed.transactions, mode="replace" if replace else "combine"
    )
    _save_state(root, config, state)

    click.echo(
        f"Imported {result.added} transaction(s), skipped {result.skipped} duplicate(s); "
        f"{result.total} total."
    )
    for w in parsed.warnings:
        click.echo(f"Warning: {w}", err=True)


@cli.command()
@click.argument("paypal_csv", type=click.Path(exists=True, dir_okay=False))
@click.option("--apply", "apply_", is_flag=True, default=False, help="Attach matches to transactions.")
@click.option(
    "--exclusive/--shared",
    default=None,
    help="Allow each bank transaction to match at most one PayPal record.",
)
@_verbosity
def match(
    paypal_csv: str,
    apply_: bool,
    exclusive: bool | None,
    verbose: bool,
    debug: bool,
) -> None:
    """Match a PayPal activity export against imported bank transactions."""
    _configure_logging(verbose, debug)
    root = Path.cwd()
    config = _load_config(root)

    from money_analyzer import matcher
    from money_analyzer.parsers import paypal

    try:
        parsed = paypal.parse(Path(paypal_csv))
    except MoneyAnalyzerError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    for w in parsed.warnings:
        click.echo(f"Warning: {w}", err=True)

    state = _load_state(root, config)
    if exclusive is None:
        exclusive = config.exclusive_matching
    matches = matcher.match(state.transactions, parsed.records, exclusive=exclusive)

    if not matches:
        click.echo("No matches found.")
        return

    click.echo(f"Found {len(matches)} match(es):")
    for m in matches:
        bank_txn = m.bank_transaction
        click.echo(
            f"  {bank_txn.date.isoformat()}  {bank_txn.money:>10.2f}  "
            f"{bank_txn.description[:40]:<40}  <- {m.record.name} "
            f"({m.confidence:.0%}: {m.reason})"
        )

    if apply_:
        changed = state.apply_matches(matches)
        _save_state(root, config, state)
        click.echo(f"Applied {changed} match(es).")


@cli.command()
@click.option("--no-llm", is_flag=True, default=False, help="Skip LLM categorization.")
@click.option("--overwrite", is_flag=True, default=False, help="Re-categorize categorized transactions.")
@_verbosity
def categorize(no_llm: bool, overwrite: bool, verbose: bool, debug: bool) -> None:
    """Categorize transactions with rules, then the configured LLM."""
    _configure_logging(verbose, debug)
    root = Path.cwd()
    config = _load_config(root)

    from money_analyzer.categorizer import categorize as run_categorize
    from money_analyzer.categorizer import with_builtin_rules
    from money_analyzer.config import load_rules
    from money_analyzer.llm import NullAdapter, make_adapter

    try:
        user_rules = load_rules(root)
    except Exception as exc:
        click.echo(f"Error loading rules: {exc}", err=True)
        sys.exit(1)

    if no_llm or config.llm_provider == "none":
        llm_adapter = NullAdapter()
        if verbose:
            click.echo("LLM categorization disabled.")
    else:
        llm_adapter = make_adapter(
            config.llm_provider,
            config.llm_model,
            config.llm_api_key_env,
            custom_rules=[
                {"pattern": r.pattern, "category": r.category, "reason": r.reason}
                for r in user_rules
            ],
        )
        if verbose:
            click.echo(f"Using LLM: {config.llm_provider} ({config.llm_model})")

    state = _load_state(root, config)
    before = sum(1 for t in state.transactions if t.category is not None)
    result = run_categorize(
        state.transactions,
        with_builtin_rules(user_rules),
        state.categories,
        llm_adapter=llm_adapter,
        overwrite=overwrite,
        batch_size=config.llm_batch_size,
    )
    _save_state(root, config, state)

    after = sum(1 for t in result.transactions if t.category is not None)
    click.echo(f"Categorized: {after} / {len(result.transactions)} (+{after - before})")
    for w in result.warnings:
        click.echo(f"Warning: {w}", err=True)
    for e in result.errors:
        click.echo(f"Error: {e}", err=True)


@cli.command(name="set-category")
@click.argument("transaction_id")
@click.argument("label", required=False, default="")
def set_category(transaction_id: str, label: str) -> None:
    """Assign LABEL to a transaction; omit LABEL to uncategorize it."""
    root = Path.cwd()
    config = _load_config(root)
    state = _load_state(root, config)

    try:
        txn = state.set_category(transaction_id, label)
    except KeyError as exc:
        click.echo(f"Error: {exc.args[0]}", err=True)
        sys.exit(1)

    _save_state(root, config, state)
    click.echo(f"{txn.transaction_id}: {txn.category or '(uncategorized)'}")


@cli.command()
@click.argument("pattern")
@click.argument("category")
def rule(pattern: str, category: str) -> None:
    """Add or replace a user rule mapping PATTERN to CATEGORY."""
    from money_analyzer.config import load_rules, save_user_rules
    from money_analyzer.models import CategoryRule

    root = Path.cwd()
    try:
        rules = [r for r in load_rules(root) if r.pattern.lower() != pattern.lower()]
        rules.append(CategoryRule(pattern=pattern, category=category, source="user"))
        save_user_rules(root, rules)
    except Exception as exc:
        click.echo(f"Error saving rules: {exc}", err=True)
        sys.exit(1)

    click.echo(f'Rule added: "{pattern}" -> {category}')


@cli.group()
def category() -> None:
    """Manage the category list."""


@category.command(name="list")
def category_list() -> None:
    """List known categories."""
    root = Path.cwd()
    state = _load_state(root, _load_config(root))
    for cat in state.categories:
        click.echo(f"  {cat.color}  {cat.name}")


@category.command(name="add")
@click.argument("name")
@click.option("--color", default=None, help="Hex color, e.g. #3B82F6.")
@click.option("--description", default="", help="Short description, used in LLM prompts.")
def category_add(name: str, color: str | None, description: str) -> None:
    """Add a custom category."""
    root = Path.cwd()
    config = _load_config(root)
    state = _load_state(root, config)
    try:
        cat = state.add_category(name, color=color, description=description)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    _save_state(root, config, state)
    click.echo(f"Added category {cat.name} ({cat.color})")


@category.command(name="delete")
@click.argument("name")
def category_delete(name: str) -> None:
    """Remove a category from the list."""
    root = Path.cwd()
    config = _load_config(root)
    state = _load_state(root, config)
    if not state.delete_category(name):
        click.echo(f"Error: unknown category {name!r}", err=True)
        sys.exit(1)
    _save_state(root, config, state)
    click.echo(f"Deleted category {name}")


@cli.command()
@click.option(
    "--period",
    type=click.Choice([p.value for p in TimePeriod]),
    default=TimePeriod.ALL.value,
    show_default=True,
    help="Reporting period.",
)
@click.option("--from", "start", type=_DATE, default=None, help="Custom range start (YYYY-MM-DD).")
@click.option("--to", "end", type=_DATE, default=None, help="Custom range end (YYYY-MM-DD).")
@click.option("--compare", is_flag=True, default=False, help="Compare with the preceding period of equal length.")
@click.option("--history", is_flag=True, default=False, help="Also print month totals and the balance series.")
@click.option("--net-worth", is_flag=True, default=False, help="Count investments towards the balance series.")
@_verbosity
def report(
    period: str,
    start: datetime | None,
    end: datetime | None,
    compare: bool,
    history: bool,
    net_worth: bool,
    verbose: bool,
    debug: bool,
) -> None:
    """Print spending, income and balance figures for a period."""
    _configure_logging(verbose, debug)
    root = Path.cwd()
    config = _load_config(root)
    state = _load_state(root, config)

    from money_analyzer import analytics
    from money_analyzer.export import print_history, print_report
    from money_analyzer.timefilter import filter_by_period, period_bounds, period_label

    if start is not None or end is not None:
        period = TimePeriod.CUSTOM.value
    custom_range = (start.date() if start else None, end.date() if end else None)

    now = datetime.now()
    selected = filter_by_period(state.transactions, period, custom_range=custom_range, now=now)
    result = analytics.calculate_analysis_result(selected)

    warnings: list[str] = []
    if period == TimePeriod.CUSTOM.value and None in custom_range:
        warnings.append("Custom range needs both --from and --to; showing all transactions")

    opening = None
    if state.current_balance is not None and state.transactions:
        opening = analytics.opening_balance(
            state.transactions, state.current_balance, net_worth=net_worth
        )

    label = period_label(period)
    if period == TimePeriod.CUSTOM.value and None not in custom_range:
        label = f"{custom_range[0].isoformat()} to {custom_range[1].isoformat()}"

    print_report(
        result,
        label,
        transaction_count=len(selected),
        warnings=warnings,
        current_balance=state.current_balance,
        opening_balance=opening,
        currency=config.currency,
    )

    if state.yearly_salary is not None:
        income = analytics.calculate_income_analysis(selected, state.yearly_salary)
        click.echo(f"Savings rate: {income.savings_rate:.1f}%")
        click.echo(f"Monthly salary: {income.monthly_income_increase:,.2f}")

    bounds = period_bounds(period, now=now)
    if period == TimePeriod.CUSTOM.value and None not in custom_range:
        bounds = custom_range

    if history:
        print_history(
            state.transactions,
            current_balance=state.current_balance,
            start=bounds[0] if bounds else None,
            end=bounds[1] if bounds else None,
            net_worth=net_worth,
            currency=config.currency,
        )

    if compare:
        if bounds is None:
            click.echo("Comparison needs a bounded period.", err=True)
            return
        length = bounds[1] - bounds[0]
        prev_end = bounds[0].toordinal() - 1
        prev_range = (
            date.fromordinal(prev_end - length.days),
            date.fromordinal(prev_end),
        )
        previous = analytics.calculate_analysis_result(
            filter_by_period(state.transactions, TimePeriod.CUSTOM, custom_range=prev_range)
        )
        click.echo(f"Compared with {prev_range[0].isoformat()} to {prev_range[1].isoformat()}:")
        for key, change in analytics.compare_periods(result, previous).items():
            click.echo(f"  {key.replace('_', ' '):<25} {change:+.1f}%")


@cli.command()
@click.argument("amount", type=float)
def balance(amount: float) -> None:
    """Record the current account balance (use -- before negative values)."""
    root = Path.cwd()
    config = _load_config(root)
    state = _load_state(root, config)
    state.current_balance = amount
    _save_state(root, config, state)
    click.echo(f"Current balance set to {amount:,.2f}")


@cli.command()
@click.argument("amount", type=click.FloatRange(min=0))
def salary(amount: float) -> None:
    """Record the yearly salary."""
    root = Path.cwd()
    config = _load_config(root)
    state = _load_state(root, config)
    state.yearly_salary = amount
    _save_state(root, config, state)
    click.echo(f"Yearly salary set to {amount:,.2f}")


@cli.command()
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--description", default="", help="Note stored in the backup.")
def backup(path: str, description: str) -> None:
    """Write transactions and categories to a JSON backup."""
    from money_analyzer.storage import export_backup

    root = Path.cwd()
    state = _load_state(root, _load_config(root))
    try:
        written = export_backup(Path(path), state, description=description)
    except OSError as exc:
        click.echo(f"Error writing backup: {exc}", err=True)
        sys.exit(1)
    click.echo(f"Backed up {len(state.transactions)} transaction(s) to {written}")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--mode",
    type=click.Choice(IMPORT_MODES),
    default="combine",
    show_default=True,
    help="Combine with or replace the current data.",
)
def restore(path: str, mode: str) -> None:
    """Restore a JSON backup."""
    from money_analyzer.storage import import_backup

    root = Path.cwd()
    config = _load_config(root)
    state = _load_state(root, config)
    try:
        added, categories_added = import_backup(Path(path), state, mode=mode)
    except MoneyAnalyzerError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    _save_state(root, config, state)

    verb = "Restored" if mode == "replace" else "Combined"
    click.echo(f"{verb} {added} transaction(s) and {categories_added} categor(ies)")


@cli.command(name="export")
@click.argument("path", type=click.Path(dir_okay=False))
@click.option(
    "--period",
    type=click.Choice([p.value for p in TimePeriod if p is not TimePeriod.CUSTOM]),
    default=TimePeriod.ALL.value,
    show_default=True,
)
def export_(path: str, period: str) -> None:
    """Write transactions to a CSV file."""
    from money_analyzer.export import export_csv
    from money_analyzer.timefilter import filter_by_period

    root = Path.cwd()
    state = _load_state(root, _load_config(root))
    selected = filter_by_period(state.transactions, period)
    try:
        written = export_csv(selected, Path(path))
    except OSError as exc:
        click.echo(f"Error writing output: {exc}", err=True)
        sys.exit(1)
    click.echo(f"Wrote {len(selected)} transaction(s) to {written}")


@cli.command()
def info() -> None:
    """Show what the data file holds."""
    from money_analyzer.storage import snapshot_info

    root = Path.cwd()
    config = _load_config(root)
    details = snapshot_info(root / config.data_file)
    if not details["exists"]:
        click.echo(details.get("error", "No saved data."))
        return
    click.echo(f"Transactions: {details['transaction_count']}")
    click.echo(f"Categories:   {details['category_count']}")
    click.echo(f"Last updated: {details['last_updated']}")
    click.echo(f"Version:      {details['version']}")


@cli.command()
@click.confirmation_option(prompt="Delete all transactions, categories and balances?")
def reset() -> None:
    """Delete all saved data."""
    from money_analyzer.storage import clear_snapshot

    root = Path.cwd()
    config = _load_config(root)
    if clear_snapshot(root / config.data_file):
        click.echo("All data cleared.")
    else:
        click.echo("No saved data.")
