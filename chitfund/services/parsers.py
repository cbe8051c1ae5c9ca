"""Parsing utilities for money amounts, dates and month labels.

Payment records arrive from storage drivers and callers in several shapes
(``Decimal``, ``int``, ``str``, ``float``; ``date``, ``datetime``, ISO strings).
These helpers normalise them before any arithmetic happens.

Example:
    >>> to_decimal("1,000.25")
    Decimal('1000.25')

    >>> parse_date_value("2026-01-15")
    datetime.date(2026, 1, 15)

    >>> format_month(date(2026, 3, 9))
    '2026-03'
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

MONTH_LABEL_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def to_decimal(value: Any) -> Decimal:
    """
    Convert a monetary value to ``Decimal`` without binary float drift.

    Floats are converted through ``str`` so ``0.1`` becomes ``Decimal('0.1')``.
    Thousand separators (commas) are stripped from strings.

    Args:
        value: Amount as Decimal, int, float, str or None

    Returns:
        Decimal value (``Decimal('0')`` for None or empty string)

    Raises:
        ValueError: If value cannot be parsed as a number

    Examples:
        >>> to_decimal(100)
        Decimal('100')
        >>> to_decimal(0.1)
        Decimal('0.1')
        >>> to_decimal(None)
        Decimal('0')
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Cannot parse amount {value!r}")

    text = str(value).strip().replace(",", "")
    if not text:
        return Decimal("0")

    try:
        result = Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"Cannot parse amount '{value}': {e}") from e
    if not result.is_finite():
        raise ValueError(f"Cannot parse amount '{value}': not a finite number")
    return result


def parse_date_value(value: Any) -> Optional[date]:
    """
    Parse a date given as ``date``, ``datetime`` or ISO-8601 string.

    Args:
        value: Date-like value or None/empty

    Returns:
        date object or None if input is empty/None

    Raises:
        ValueError: If value cannot be interpreted as a date

    Examples:
        >>> parse_date_value("2026-01-01")
        datetime.date(2026, 1, 1)
        >>> parse_date_value("2026-01-01T10:30:00")
        datetime.date(2026, 1, 1)
        >>> parse_date_value("")
        None
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Cannot parse date {value!r}: unsupported type {type(value).__name__}")

    text = value.strip()
    if not text:
        return None

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError as e:
        raise ValueError(f"Cannot parse date '{value}': {e}") from e


def format_month(value: date) -> str:
    """Return the ``YYYY-MM`` bucket label for a date."""
    return f"{value.year:04d}-{value.month:02d}"


def parse_month_label(value: str) -> str:
    """
    Validate a ``YYYY-MM`` bucket label.

    Args:
        value: Month label such as "2026-01"

    Returns:
        The stripped label

    Raises:
        ValueError: If the label is not a valid year-month
    """
    text = (value or "").strip()
    if not MONTH_LABEL_RE.match(text):
        raise ValueError(f"Invalid payment month '{value}': expected YYYY-MM")
    return text


def month_label_to_date(value: str) -> date:
    """Return the first day of the month named by a ``YYYY-MM`` label."""
    match = MONTH_LABEL_RE.match(parse_month_label(value))
    return date(int(match.group(1)), int(match.group(2)), 1)
