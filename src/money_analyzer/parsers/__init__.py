"""CSV parsers for the two supported input formats.

- :mod:`~money_analyzer.parsers.bank` -- the primary ledger export
  (headerless ``date, amount, description``). Strict: one bad row rejects
  the file.
- :mod:`~money_analyzer.parsers.paypal` -- the PayPal activity export used
  to enrich bank transactions. Tolerant per field.
"""

from __future__ import annotations

from money_analyzer.parsers import bank, paypal

__all__ = ["bank", "paypal"]
