"""Money Analyzer: bank CSV import, PayPal reconciliation and spending analytics."""

__version__ = "0.1.0"
