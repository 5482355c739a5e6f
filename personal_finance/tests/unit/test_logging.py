"""
Unit tests for log masking and the audit logger.
"""

import logging

from personal_finance.core.logging import AuditLogger, SensitiveDataMaskingFormatter, mask_iban, mask_text


class TestMasking:
    """Banking data never reaches the log output."""

    def test_mask_iban(self) -> None:
        masked = mask_text("Bonifico da IT60X0542811101000000123456")

        assert "IT60X0542811101000000123456" not in masked
        assert masked.startswith("Bonifico da IT*")
        assert masked.endswith("3456")

    def test_mask_card_number(self) -> None:
        masked = mask_text("Carta 4111 1111 1111 1111")

        assert masked == "Carta ****-****-****-****"

    def test_mask_short_iban(self) -> None:
        assert mask_iban("IT60") == "****"

    def test_formatter_masks_message(self) -> None:
        formatter = SensitiveDataMaskingFormatter("%(message)s")
        formatter.mask_sensitive = True
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "IBAN DE89370400440532013000", None, None)

        output = formatter.format(record)

        assert "DE89370400440532013000" not in output


class TestAuditLogger:
    """Structured audit events."""

    def test_export_completed(self, caplog) -> None:
        audit = AuditLogger("audit.test")

        with caplog.at_level(logging.INFO, logger="audit.test"):
            audit.log_export_completed("Export.csv", 3, ["Data", "Importo"], conti=1)

        record = caplog.records[-1]
        assert record.event == "export_completed"
        assert record.row_count == 3
        assert record.conti == 1

    def test_error_carries_type(self, caplog) -> None:
        audit = AuditLogger("audit.test")

        with caplog.at_level(logging.ERROR, logger="audit.test"):
            audit.log_export_failed("Export.csv", OSError("disk full"))

        record = caplog.records[-1]
        assert record.event == "export_failed"
        assert record.error_type == "OSError"
        assert record.export_file == "Export.csv"

    def test_import_completed(self, caplog) -> None:
        audit = AuditLogger("audit.test")

        with caplog.at_level(logging.INFO, logger="audit.test"):
            audit.log_import_completed("estratto.csv", 5, skipped=1, errors=0)

        record = caplog.records[-1]
        assert record.event == "import_completed"
        assert record.import_file == "estratto.csv"
        assert record.imported == 5
        assert record.skipped == 1
