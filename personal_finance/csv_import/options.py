"""
Parameters of a CSV import.
"""

import uuid
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from personal_finance.export.options import CSVDateFormat, validate_delimiter


class ImportOptions(BaseModel):
    """
    How a CSV file is read and turned into transactions.

    ``date_format`` is tried first; the other known patterns are fallbacks.
    When ``default_conto_id`` is set every row goes to that conto, otherwise
    the conto column is matched by name. ``filter_column``/``filter_value``
    keep only the rows of one account in multi-account files.
    """

    model_config = ConfigDict(validate_assignment=True)

    date_format: CSVDateFormat = CSVDateFormat.EU_SLASH_DATE_ONLY
    ignore_zero_amounts: bool = False
    ignore_duplicates: bool = True
    create_missing_categories: bool = True
    default_conto_id: Optional[uuid.UUID] = None

    delimiter: str = ","
    has_header: bool = True
    encoding: str = "utf-8"

    filter_column: Optional[str] = None
    filter_value: Optional[str] = None

    @field_validator("date_format", mode="before")
    @classmethod
    def parse_date_format(cls, v: Any) -> CSVDateFormat:
        return CSVDateFormat.parse(v)

    @field_validator("delimiter")
    @classmethod
    def check_delimiter(cls, v: str) -> str:
        return validate_delimiter(v)
