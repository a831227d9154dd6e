"""
W3C date strings as used by pass.json date fields
(`relevantDate`, `expirationDate`, date field values).

Format: YYYY-MM-DDTHH:MM[:SS](Z|+HH:MM|-HH:MM)
"""
import re
from datetime import datetime, timedelta, timezone
from typing import Union

W3C_DATE_RE = re.compile(
    r"^20\d{2}-[01]\d-[0-3]\dT[0-5]\d:[0-5]\d(:[0-5]\d)?(Z|[+-][01]\d:[03]0)$"
)


def is_valid_w3c_date_string(value) -> bool:
    return isinstance(value, str) and bool(W3C_DATE_RE.match(value))


def get_w3c_date_string(value: Union[str, datetime]) -> str:
    """
    Convert a string or datetime into a W3C date string.

    Valid W3C strings are returned unchanged. Other strings are parsed as
    ISO 8601. Naive datetimes are taken as UTC. Seconds are dropped.

    Raises:
        ValueError: If the value cannot be converted
    """
    if isinstance(value, str):
        if is_valid_w3c_date_string(value):
            return value
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValueError(f"Invalid date value {value!r}: not a W3C or ISO 8601 date") from e
    if not isinstance(value, datetime):
        raise TypeError("Argument must be either a string or datetime object")

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    offset = value.utcoffset() or timedelta(0)
    offset_minutes = int(offset.total_seconds() // 60)
    sign = "-" if offset_minutes < 0 else "+"
    hours, minutes = divmod(abs(offset_minutes), 60)
    return f"{value.strftime('%Y-%m-%dT%H:%M')}{sign}{hours:02d}:{minutes:02d}"


def get_date_from_w3c_string(value: str) -> datetime:
    """Parse a W3C date string into an aware datetime."""
    if not is_valid_w3c_date_string(value):
        raise ValueError(f"Date string {value} is not a valid W3C date string")
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
