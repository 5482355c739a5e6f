"""Personal finance ledger with CSV export."""

__version__ = "1.0.0"
