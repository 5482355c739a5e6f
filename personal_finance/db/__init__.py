"""Ledger store: models, sessions and queries."""
