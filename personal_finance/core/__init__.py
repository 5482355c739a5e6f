"""Core application modules."""

from personal_finance.core.config import settings
from personal_finance.core.currency import format_amount, format_currency, round_currency
from personal_finance.core.logging import get_logger, setup_logging, audit_logger
from personal_finance.core.time import now, format_pattern, start_of_day, end_of_day

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
    "audit_logger",
    "now",
    "format_pattern",
    "start_of_day",
    "end_of_day",
    "format_amount",
    "format_currency",
    "round_currency",
]
