"""UTC calendar date helpers. Dates are carried around as YYYY-MM-DD strings."""

from datetime import UTC, date, datetime, timedelta


def to_date_string(timestamp: str) -> str:
    """Convert an ISO 8601 timestamp to its UTC calendar date."""
    parsed = datetime.fromisoformat(timestamp)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC).date().isoformat()


def today_utc() -> str:
    """Return today's date in UTC."""
    return datetime.now(UTC).date().isoformat()


def utc_now_iso() -> str:
    """Return the current UTC time in ISO 8601 format with a Z suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_date(value: str) -> date:
    """Parse a YYYY-MM-DD string.

    Raises:
        ValueError: If the string is not a valid calendar date.
    """
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"Invalid date string: {value}") from e


def date_path_parts(date_str: str) -> tuple[str, str, str]:
    """Split a date string into (year, month, day) path segments."""
    parsed = parse_date(date_str)
    return f"{parsed.year:04d}", f"{parsed.month:02d}", f"{parsed.day:02d}"


def subtract_days(date_str: str, days: int) -> str:
    """Return the date ``days`` days before ``date_str``."""
    return (parse_date(date_str) - timedelta(days=days)).isoformat()

