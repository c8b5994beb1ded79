"""Exceptions raised at the package's parse and storage boundaries."""

from __future__ import annotations


class MoneyAnalyzerError(Exception):
    """Base class for all errors raised by money_analyzer."""


class MalformedRowError(MoneyAnalyzerError):
    """A bank CSV row could not be parsed; the whole import is rejected.

    Attributes:
        row: 1-based row number in the source file.
        field: Name of the failing field: ``"date"``, ``"amount"``,
            ``"description"`` or ``"columns"``.
        detail: Human-readable description of the problem.
    """

    def __init__(self, row: int, field: str, detail: str) -> None:
        self.row = row
        self.field = field
        self.detail = detail
        super().__init__(f"Row {row}: {detail}")


class SnapshotError(MoneyAnalyzerError):
    """A snapshot or backup file could not be read or decoded."""
