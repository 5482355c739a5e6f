"""
Logging setup for the ledger.

Log lines go to stderr as JSON (or plain text for local work) so that CLI
output on stdout stays clean. Bank identifiers that end up in messages or
structured fields are masked before formatting.
"""

import logging
import re
import sys
from typing import Any, Optional

from pythonjsonlogger import jsonlogger

from personal_finance.core.config import settings

JSON_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty third-party loggers and the level they are held at
QUIET_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
}

_IBAN = re.compile(r"\b[A-Z]{2}\d{2}(?:\s?[A-Z0-9]{4}){2,7}(?:\s?[A-Z0-9]{1,4})?\b")
_CARD_NUMBER = re.compile(r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b")


def mask_iban(iban: str) -> str:
    """``IT60X0542811101000000123456`` -> ``IT*********************3456``."""
    compact = iban.replace(" ", "")
    if len(compact) <= 6:
        return "*" * len(compact)
    return compact[:2] + "*" * (len(compact) - 6) + compact[-4:]


def mask_text(text: str) -> str:
    """Replace card numbers and IBANs in ``text``."""
    text = _CARD_NUMBER.sub("****-****-****-****", text)
    return _IBAN.sub(lambda m: mask_iban(m.group(0)), text)


class _MaskingMixin:
    """Masks the message and string ``extra`` fields of a record in place."""

    mask_sensitive: bool = True

    def _mask_record(self, record: logging.LogRecord) -> None:
        if not self.mask_sensitive:
            return

        record.msg = mask_text(str(record.msg))
        for key, value in list(record.__dict__.items()):
            if key != "msg" and isinstance(value, str):
                record.__dict__[key] = mask_text(value)


class SensitiveDataMaskingFormatter(_MaskingMixin, jsonlogger.JsonFormatter):
    """JSON formatter with masking of bank data."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.mask_sensitive = settings.mask_sensitive_data_in_logs

    def format(self, record: logging.LogRecord) -> str:
        self._mask_record(record)
        return super().format(record)


class TextFormatter(_MaskingMixin, logging.Formatter):
    """Human-readable formatter for development."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.mask_sensitive = settings.mask_sensitive_data_in_logs

    def format(self, record: logging.LogRecord) -> str:
        self._mask_record(record)
        return super().format(record)


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Install a single stderr handler on the root logger.

    Args:
        level: Level name (defaults to LOG_LEVEL)
        log_format: ``json`` or ``text`` (defaults to LOG_FORMAT)
    """
    level_name = (level or settings.log_level).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)
    log_format = log_format or settings.log_format

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    if log_format == "json":
        handler.setFormatter(SensitiveDataMaskingFormatter(fmt=JSON_FORMAT, datefmt=DATE_FORMAT))
    else:
        handler.setFormatter(TextFormatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)
    if settings.debug and settings.database_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    root.debug(
        "Logging ready",
        extra={"app": settings.app_name, "environment": settings.app_env, "log_level": level_name},
    )


def get_logger(name: str) -> logging.Logger:
    """Module logger, e.g. ``get_logger(__name__)``."""
    return logging.getLogger(name)


class AuditLogger:
    """
    Audit trail of export and import attempts.

    Each entry carries an ``event`` name plus the export parameters as
    structured fields, so that JSON logs can be filtered per event.
    """

    def __init__(self, logger_name: str = "audit") -> None:
        self.logger = logging.getLogger(logger_name)

    def _emit(self, level: int, event: str, message: str, exc: Optional[BaseException] = None, **fields: Any) -> None:
        self.logger.log(level, message, extra={"event": event, **fields}, exc_info=exc)

    def log_export_completed(self, filename: str, row_count: int, fields: list[str], **kwargs: Any) -> None:
        """Record a written export file."""
        self._emit(
            logging.INFO,
            "export_completed",
            f"CSV export completed: {filename}",
            export_file=filename,
            row_count=row_count,
            fields=fields,
            **kwargs,
        )

    def log_import_completed(self, source: str, imported: int, **kwargs: Any) -> None:
        """Record a finished CSV import."""
        self._emit(
            logging.INFO,
            "import_completed",
            f"CSV import completed: {source} ({imported} transactions)",
            import_file=source,
            imported=imported,
            **kwargs,
        )

    def log_import_failed(self, source: str, error: Exception, **kwargs: Any) -> None:
        self.log_error("import_failed", error, import_file=source, **kwargs)

    def log_fetch_failed(self, error: Exception, **kwargs: Any) -> None:
        self.log_error("fetch_failed", error, **kwargs)

    def log_export_failed(self, filename: str, error: Exception, **kwargs: Any) -> None:
        self.log_error("export_failed", error, export_file=filename, **kwargs)

    def log_error(self, event: str, error: Exception, **kwargs: Any) -> None:
        """Record a failure with the exception type and message."""
        self._emit(
            logging.ERROR,
            event,
            f"{event}: {error}",
            exc=error,
            error_type=type(error).__name__,
            error_message=str(error),
            **kwargs,
        )


audit_logger = AuditLogger()
