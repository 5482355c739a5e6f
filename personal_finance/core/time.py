"""
Timezone-aware datetime utilities.

Transactions are stored as naive local datetimes; everything that renders
or compares dates goes through these helpers so the configured timezone
is applied consistently.
"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

import pytz
from babel.dates import format_datetime as babel_format_datetime
from babel.dates import get_day_names, get_month_names

from personal_finance.core.config import settings


# Get configured timezone
TIMEZONE = pytz.timezone(settings.timezone)

FILENAME_TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S"


def now() -> datetime:
    """
    Get current datetime in configured timezone.

    Returns:
        Timezone-aware datetime in the configured timezone
    """
    return datetime.now(TIMEZONE)


def to_timezone(dt: datetime, tz: Optional[pytz.tzinfo.BaseTzInfo] = None) -> datetime:
    """
    Convert datetime to specified timezone (or default configured timezone).

    Args:
        dt: Input datetime (can be naive or aware)
        tz: Target timezone (defaults to configured timezone)

    Returns:
        Timezone-aware datetime in target timezone
    """
    target_tz = tz or TIMEZONE

    # If naive, assume it's in target timezone
    if dt.tzinfo is None:
        return target_tz.localize(dt)

    return dt.astimezone(target_tz)


def to_naive_local(dt: datetime) -> datetime:
    """
    Normalize a datetime to naive local time.

    Aware datetimes are converted to the configured timezone first; naive
    ones are returned unchanged.
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(TIMEZONE).replace(tzinfo=None)


def start_of_day(value: Union[date, datetime]) -> datetime:
    """
    Get start of day (00:00:00) as naive local datetime.

    Args:
        value: Date or datetime

    Returns:
        Naive datetime set to 00:00:00
    """
    if isinstance(value, datetime):
        value = to_naive_local(value).date()
    return datetime(value.year, value.month, value.day)


def end_of_day(value: Union[date, datetime]) -> datetime:
    """
    Get end of day (23:59:59.999999) as naive local datetime.

    Args:
        value: Date or datetime

    Returns:
        Naive datetime set to 23:59:59.999999
    """
    return start_of_day(value) + timedelta(days=1) - timedelta(microseconds=1)


def months_ago(months: int, reference: Optional[datetime] = None) -> datetime:
    """
    Same wall-clock time N calendar months before ``reference``.

    The day is clamped to the last day of the target month.
    """
    reference = to_naive_local(reference or now())
    month_index = reference.month - 1 - months
    year = reference.year + month_index // 12
    month = month_index % 12 + 1

    # Clamp day (e.g. 31 March -> 28/29 February)
    if month == 12:
        next_month = datetime(year + 1, 1, 1)
    else:
        next_month = datetime(year, month + 1, 1)
    last_day = (next_month - timedelta(days=1)).day

    return reference.replace(year=year, month=month, day=min(reference.day, last_day))


def format_pattern(dt: datetime, pattern: str, locale: Optional[str] = None) -> str:
    """
    Render a datetime with an LDML pattern (e.g. ``yyyy-MM-dd``).

    Naive datetimes are interpreted in the configured timezone.

    Examples:
        >>> format_pattern(datetime(2024, 1, 5), "yyyy-MM-dd")
        '2024-01-05'
        >>> format_pattern(datetime(2024, 1, 5), "dd/MM/yyyy")
        '05/01/2024'
    """
    localized = to_timezone(dt)
    return babel_format_datetime(
        localized,
        format=pattern,
        tzinfo=TIMEZONE,
        locale=locale or settings.locale,
    )


# Quoted literal, run of one pattern letter, or any other single character
_LDML_TOKEN = re.compile(r"'[^']*'|([A-Za-z])\1*|.", re.DOTALL)


def _names_regex(group: Optional[str], names: dict) -> str:
    alternation = "|".join(re.escape(name) for name in sorted(names.values(), key=len, reverse=True))
    return f"(?P<{group}>{alternation})" if group else f"(?:{alternation})"


def _token_regex(token: str, locale: str) -> str:
    letter, width = token[0], len(token)
    if letter == "'":
        return re.escape(token[1:-1]) if width > 2 else "'"
    if letter == "y":
        return r"(?P<yy>\d{2})" if width == 2 else r"(?P<year>\d{4})"
    if letter == "M":
        if width >= 4:
            return _names_regex("month_name", get_month_names("wide", locale=locale))
        if width == 3:
            return _names_regex("month_abbr", get_month_names("abbreviated", locale=locale))
        return r"(?P<month>\d{1,2})"
    if letter == "d":
        return r"(?P<day>\d{1,2})"
    if letter == "H":
        return r"(?P<hour>\d{1,2})"
    if letter == "m":
        return r"(?P<minute>\d{1,2})"
    if letter == "s":
        return r"(?P<second>\d{1,2})"
    if letter == "E":
        return _names_regex(None, get_day_names("wide" if width >= 4 else "abbreviated", locale=locale))
    if letter == "Z":
        return r"(?P<tz>Z|[+-]\d{2}:?\d{2})"
    if letter.isalpha():
        raise ValueError(f"Unsupported pattern letter: {token!r}")
    return re.escape(token)


def _month_number(text: str, names: dict) -> int:
    for number, name in names.items():
        if name.casefold() == text.casefold():
            return number
    raise ValueError(f"Unknown month name: {text!r}")


def parse_pattern(text: str, pattern: str, locale: Optional[str] = None) -> datetime:
    """
    Parse text written with an LDML pattern; the inverse of ``format_pattern``.

    Supports years, numeric and named months, days, hours, minutes,
    seconds, weekday names (checked, then ignored) and UTC offsets. A
    missing day is the 1st, a missing time is midnight, and two-digit years
    fall in 2000-2099.

    Returns:
        Naive local datetime; values with an offset are converted to the
        configured timezone

    Raises:
        ValueError: If ``text`` does not match ``pattern`` or is not a valid date

    Examples:
        >>> parse_pattern("05/01/2024", "dd/MM/yyyy")
        datetime.datetime(2024, 1, 5, 0, 0)
    """
    locale = locale or settings.locale
    regex = "".join(_token_regex(m.group(0), locale) for m in _LDML_TOKEN.finditer(pattern))
    match = re.fullmatch(regex, text.strip(), re.IGNORECASE)
    if match is None:
        raise ValueError(f"{text!r} does not match {pattern!r}")
    parts = match.groupdict()

    if parts.get("year"):
        year = int(parts["year"])
    elif parts.get("yy"):
        year = 2000 + int(parts["yy"])
    else:
        raise ValueError(f"Pattern without a year: {pattern!r}")

    if parts.get("month_name"):
        month = _month_number(parts["month_name"], get_month_names("wide", locale=locale))
    elif parts.get("month_abbr"):
        month = _month_number(parts["month_abbr"], get_month_names("abbreviated", locale=locale))
    else:
        month = int(parts.get("month") or 1)

    parsed = datetime(
        year,
        month,
        int(parts.get("day") or 1),
        int(parts.get("hour") or 0),
        int(parts.get("minute") or 0),
        int(parts.get("second") or 0),
    )

    offset = parts.get("tz")
    if offset:
        if offset.upper() == "Z":
            tz = timezone.utc
        else:
            digits = offset[1:].replace(":", "")
            delta = timedelta(hours=int(digits[:2]), minutes=int(digits[2:]))
            tz = timezone(-delta if offset[0] == "-" else delta)
        parsed = to_naive_local(parsed.replace(tzinfo=tz))

    return parsed


def format_filename_timestamp(dt: Optional[datetime] = None) -> str:
    """Timestamp used in export file names (``2024-01-05T14-30-00``)."""
    return to_naive_local(dt or now()).strftime(FILENAME_TIMESTAMP_FORMAT)


def parse_cli_date(date_str: str) -> date:
    """
    Parse a ``YYYY-MM-DD`` string as given on the command line.

    Raises:
        ValueError: If the string is not an ISO date
    """
    return date.fromisoformat(date_str.strip())
