"""
Export configuration: exportable columns, date patterns and the per-session
options value.
"""

import enum
import uuid
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from personal_finance.core.config import settings
from personal_finance.core.time import end_of_day, format_pattern, months_ago, now, start_of_day, to_naive_local
from personal_finance.export.errors import InvalidExportOptions


class CSVFieldSection(str, enum.Enum):
    """Group a field is listed under in the field picker."""

    GENERAL = "Generale"
    ASSIGNMENT = "Assegnazione"
    DATE_TIME = "Data e ora"
    MISC = "Varie"

    @property
    def fields(self) -> list["CSVField"]:
        return [field for field in CSVField if field.section is self]


class CSVField(str, enum.Enum):
    """
    Exportable transaction column. The value is the header label.
    """

    # General
    TRANSACTION_TYPE = "Tipo"
    AMOUNT = "Importo"
    SOURCE_CURRENCY = "Valuta di origine"
    TARGET_CURRENCY = "Valuta di destinazione"
    EXCHANGE_RATE = "Tasso di cambio"

    # Assignment
    SOURCE_ACCOUNT = "Conto (Da)"
    TARGET_ACCOUNT = "Conto (A)"
    CATEGORY = "Categoria"
    PAYEE = "Beneficiario"

    # Date
    DATE = "Data"

    # Misc
    NOTES = "Note"
    DESCRIPTION = "Descrizione"

    @property
    def label(self) -> str:
        return self.value

    @property
    def is_required(self) -> bool:
        return self in (CSVField.AMOUNT, CSVField.DATE)

    @property
    def icon(self) -> str:
        return _FIELD_ICONS[self]

    @property
    def section(self) -> CSVFieldSection:
        return _FIELD_SECTIONS[self]

    @classmethod
    def parse(cls, value: Any) -> "CSVField":
        """
        Resolve a field from a member, a header label or a member name.

        Matching of labels and names is case-insensitive.

        Raises:
            InvalidExportOptions: If nothing matches
        """
        if isinstance(value, cls):
            return value

        text = str(value).strip()
        for field in cls:
            if text.casefold() in (field.value.casefold(), field.name.casefold()):
                return field

        raise InvalidExportOptions(f"Unknown CSV field: {value!r}")

    @classmethod
    def ordered(cls, fields: Iterable["CSVField"]) -> list["CSVField"]:
        """Restrict the canonical column order to ``fields``."""
        selected = set(fields)
        return [field for field in CSV_FIELD_ORDER if field in selected]


_FIELD_ICONS = {
    CSVField.TRANSACTION_TYPE: "arrow.left.arrow.right",
    CSVField.AMOUNT: "eurosign",
    CSVField.SOURCE_CURRENCY: "coloncurrencysign.circle",
    CSVField.TARGET_CURRENCY: "coloncurrencysign.circle",
    CSVField.EXCHANGE_RATE: "percent",
    CSVField.SOURCE_ACCOUNT: "building.columns",
    CSVField.TARGET_ACCOUNT: "building.columns.fill",
    CSVField.CATEGORY: "tag",
    CSVField.PAYEE: "person",
    CSVField.DATE: "calendar",
    CSVField.NOTES: "note.text",
    CSVField.DESCRIPTION: "text.alignleft",
}

_FIELD_SECTIONS = {
    CSVField.TRANSACTION_TYPE: CSVFieldSection.GENERAL,
    CSVField.AMOUNT: CSVFieldSection.GENERAL,
    CSVField.SOURCE_CURRENCY: CSVFieldSection.GENERAL,
    CSVField.TARGET_CURRENCY: CSVFieldSection.GENERAL,
    CSVField.EXCHANGE_RATE: CSVFieldSection.GENERAL,
    CSVField.SOURCE_ACCOUNT: CSVFieldSection.ASSIGNMENT,
    CSVField.TARGET_ACCOUNT: CSVFieldSection.ASSIGNMENT,
    CSVField.CATEGORY: CSVFieldSection.ASSIGNMENT,
    CSVField.PAYEE: CSVFieldSection.ASSIGNMENT,
    CSVField.DATE: CSVFieldSection.DATE_TIME,
    CSVField.NOTES: CSVFieldSection.MISC,
    CSVField.DESCRIPTION: CSVFieldSection.MISC,
}

# Columns are always written sorted by header label, whatever the selection order.
CSV_FIELD_ORDER: tuple[CSVField, ...] = tuple(sorted(CSVField, key=lambda f: f.value))


class CSVDateFormat(str, enum.Enum):
    """Date pattern (LDML syntax) used for the date column."""

    # ISO 8601
    ISO8601 = "yyyy-MM-dd'T'HH:mm:ss"
    ISO8601_Z = "yyyy-MM-dd'T'HH:mm:ssZ"
    ISO8601_OFFSET = "yyyy-MM-dd'T'HH:mm:ssZZZZZ"
    ISO8601_DATE_ONLY = "yyyy-MM-dd"

    # US
    US_SLASH = "MM/dd/yyyy HH:mm"
    US_DASH = "MM-dd-yyyy HH:mm"
    US_DOT = "MM.dd.yyyy HH:mm"
    US_SLASH_SHORT = "MM/dd/yy HH:mm"
    US_SLASH_DATE_ONLY = "MM/dd/yyyy"

    # European
    EU_SLASH = "dd/MM/yyyy HH:mm"
    EU_DASH = "dd-MM-yyyy HH:mm"
    EU_DOT = "dd.MM.yyyy HH:mm"
    EU_SLASH_SHORT = "dd/MM/yy HH:mm"
    EU_SLASH_DATE_ONLY = "dd/MM/yyyy"
    EU_DASH_DATE_ONLY = "dd-MM-yyyy"

    # Text
    LONG_WEEKDAY = "EEEE, MMM d, yyyy"
    SHORT_WEEKDAY = "EEEE, MMM d, yy"
    MONTH_YEAR = "MMMM yyyy"
    SHORT_MONTH = "MMM d, yyyy"

    # RFC 2822
    RFC2822 = "E, d MMM yyyy HH:mm:ss Z"

    @property
    def pattern(self) -> str:
        return self.value

    def example(self, sample: Optional[datetime] = None) -> str:
        """Render ``sample`` (default: now) with this pattern."""
        return format_pattern(sample or to_naive_local(now()), self.value)

    @classmethod
    def parse(cls, value: Any) -> "CSVDateFormat":
        """
        Resolve a date format from a member, its pattern or its member name.

        Raises:
            InvalidExportOptions: If nothing matches
        """
        if isinstance(value, cls):
            return value

        text = str(value).strip()
        for date_format in cls:
            if text == date_format.value or text.casefold() == date_format.name.casefold():
                return date_format

        raise InvalidExportOptions(f"Unknown date format: {value!r}")


# Order in which imported dates are tried when the chosen pattern does not
# match: European first, then ISO 8601, US and text patterns.
DATE_FALLBACK_ORDER: tuple[CSVDateFormat, ...] = (
    CSVDateFormat.EU_SLASH_DATE_ONLY,
    CSVDateFormat.EU_DASH_DATE_ONLY,
    CSVDateFormat.EU_SLASH,
    CSVDateFormat.EU_DASH,
    CSVDateFormat.EU_DOT,
    CSVDateFormat.EU_SLASH_SHORT,
    CSVDateFormat.ISO8601_DATE_ONLY,
    CSVDateFormat.ISO8601,
    CSVDateFormat.ISO8601_Z,
    CSVDateFormat.ISO8601_OFFSET,
    CSVDateFormat.US_SLASH_DATE_ONLY,
    CSVDateFormat.US_SLASH,
    CSVDateFormat.US_DASH,
    CSVDateFormat.US_DOT,
    CSVDateFormat.US_SLASH_SHORT,
    CSVDateFormat.LONG_WEEKDAY,
    CSVDateFormat.SHORT_WEEKDAY,
    CSVDateFormat.MONTH_YEAR,
    CSVDateFormat.SHORT_MONTH,
    CSVDateFormat.RFC2822,
)


def validate_delimiter(v: str) -> str:
    """A CSV delimiter is one character other than a quote or a line break."""
    if len(v) != 1 or v in ('"', "\n", "\r"):
        raise ValueError("delimiter must be a single character other than a quote or line break")
    return v


def _default_date_format() -> CSVDateFormat:
    return CSVDateFormat.parse(settings.default_date_format)


class ExportOptions(BaseModel):
    """
    Parameters of one export session.

    Created fresh for every export and mutated as the user changes the form;
    assignments are validated. Plain dates widen to the whole day, so
    ``date_to=date(2024, 1, 31)`` includes transactions at 23:59 that day.
    An empty ``conto_ids`` means no account filter.
    """

    model_config = ConfigDict(validate_assignment=True)

    include_header: bool = True
    date_format: CSVDateFormat = Field(default_factory=_default_date_format)
    delimiter: str = ","
    include_fields: set[CSVField] = Field(default_factory=lambda: set(CSVField))
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    conto_ids: set[uuid.UUID] = Field(default_factory=set)

    @field_validator("date_format", mode="before")
    @classmethod
    def parse_date_format(cls, v: Any) -> CSVDateFormat:
        return CSVDateFormat.parse(v)

    @field_validator("include_fields", mode="before")
    @classmethod
    def parse_fields(cls, v: Any) -> set[CSVField]:
        if isinstance(v, (str, CSVField)):
            v = [v]
        if not isinstance(v, (list, tuple, set, frozenset)):
            raise ValueError(f"include_fields must be a field or a list of fields, not {type(v).__name__}")
        return {CSVField.parse(item) for item in v}

    @field_validator("date_from", mode="before")
    @classmethod
    def widen_date_from(cls, v: Any) -> Any:
        day = _as_plain_date(v)
        return start_of_day(day) if day is not None else v

    @field_validator("date_to", mode="before")
    @classmethod
    def widen_date_to(cls, v: Any) -> Any:
        day = _as_plain_date(v)
        return end_of_day(day) if day is not None else v

    @field_validator("date_from", "date_to")
    @classmethod
    def normalize_bound(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(v) if v is not None else None

    @field_validator("delimiter")
    @classmethod
    def check_delimiter(cls, v: str) -> str:
        return validate_delimiter(v)

    @property
    def ordered_fields(self) -> list[CSVField]:
        """Selected fields in output column order."""
        return CSVField.ordered(self.include_fields)

    def toggle_date_from(self, enabled: bool) -> None:
        """Turning the start bound on defaults it to one month ago."""
        self.date_from = months_ago(1) if enabled else None

    def toggle_date_to(self, enabled: bool) -> None:
        """Turning the end bound on defaults it to now."""
        self.date_to = to_naive_local(now()) if enabled else None

    def toggle_conto(self, conto_id: uuid.UUID) -> None:
        self.conto_ids = self.conto_ids ^ {conto_id}

    def toggle_all_conti(self, all_ids: Iterable[uuid.UUID]) -> None:
        """Select every conto, or clear the selection if all are selected already."""
        all_ids = set(all_ids)
        self.conto_ids = set() if self.conto_ids == all_ids else all_ids

    @classmethod
    def from_preset(cls, data: dict[str, Any]) -> "ExportOptions":
        """Build options from a YAML preset mapping."""
        return cls.model_validate(data)


def load_export_preset(path: str | Path) -> dict[str, Any]:
    """
    Read an export preset.

    A preset is a YAML mapping with any of ``include_fields``,
    ``date_format``, ``include_header``, ``delimiter``, ``date_from`` and
    ``date_to``. An empty file is an empty preset.

    Raises:
        FileNotFoundError: If the file does not exist
        InvalidExportOptions: If the file is not a YAML mapping
    """
    preset_path = Path(path)
    if not preset_path.is_file():
        raise FileNotFoundError(f"Preset di esportazione non trovato: {preset_path}")

    try:
        data = yaml.safe_load(preset_path.read_text(encoding="utf-8"))
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise InvalidExportOptions(f"Preset non valido: {preset_path} ({e})") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidExportOptions(
            f"Preset non valido: {preset_path} (atteso un dizionario, trovato {type(data).__name__})"
        )
    return data


def _as_plain_date(value: Any) -> Optional[date]:
    """Return a ``date`` for plain dates and ``YYYY-MM-DD`` strings, else None."""
    if isinstance(value, datetime):
        return None
    if isinstance(value, date):
        return value
    if isinstance(value, str) and len(value.strip()) == 10:
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            return None
    return None
