"""Date parsing utilities for market proposal end dates.

Proposals carry their end date in the display format ``DD/MM/YYYY HH:MM:SS``
(the time portion is optional and may omit seconds). All instants are UTC.
"""

from datetime import UTC, date, datetime

END_DATE_FORMAT = "%d/%m/%Y %H:%M:%S"
DEFAULT_END_TIME = "23:59:59"


def parse_end_date(value: str) -> int:
    """Parse a proposal end date into a Unix timestamp.

    Accept ``DD/MM/YYYY``, ``DD/MM/YYYY HH:MM`` and ``DD/MM/YYYY HH:MM:SS``.
    A missing time defaults to the last second of the day.

    Args:
        value: End date string in display format.

    Returns:
        Unix timestamp in seconds.

    Raises:
        ValueError: If the value cannot be parsed.

    """
    parts = value.strip().split()
    if not parts or len(parts) > 2:  # noqa: PLR2004
        msg = f"Cannot parse end date: {value!r}. Use DD/MM/YYYY HH:MM:SS."
        raise ValueError(msg)
    date_part = parts[0]
    time_part = parts[1] if len(parts) == 2 else DEFAULT_END_TIME  # noqa: PLR2004

    for fmt in ("%d/%m/%Y %H:%M:%S", "%d/%m/%Y %H:%M"):
        try:
            dt = datetime.strptime(f"{date_part} {time_part}", fmt).replace(tzinfo=UTC)
            return int(dt.timestamp())
        except ValueError:
            continue

    msg = f"Cannot parse end date: {value!r}. Use DD/MM/YYYY HH:MM:SS."
    raise ValueError(msg)


def format_end_date(timestamp: int) -> str:
    """Format a Unix timestamp in the proposal display format."""
    return datetime.fromtimestamp(timestamp, tz=UTC).strftime(END_DATE_FORMAT)


def replace_end_day(end_date: str, day: date) -> str:
    """Move an end date to another calendar day, keeping its time of day.

    Args:
        end_date: Current end date string; may be empty.
        day: New calendar day.

    Returns:
        End date string for ``day`` with the existing (or default) time.

    """
    parts = end_date.strip().split()
    time_part = parts[1] if len(parts) == 2 else DEFAULT_END_TIME  # noqa: PLR2004
    return f"{day:%d/%m/%Y} {time_part}"
