from datetime import datetime, timedelta, timezone
from typing import Any, Final, Literal

from loguru import logger

from klinefetch.errors import InvalidRangeError

TimestampUnit = Literal["s", "ms", "us"]

# Number of units per second for each supported epoch precision.
UNITS_PER_SECOND: Final[dict[str, int]] = {"s": 1, "ms": 1_000, "us": 1_000_000}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def ensure_utc(dt_obj: datetime) -> datetime:
    """Returns `dt_obj` as an aware UTC datetime. Naive values are assumed UTC."""
    if dt_obj.tzinfo is None:
        return dt_obj.replace(tzinfo=timezone.utc)
    return dt_obj.astimezone(timezone.utc)


def parse_datetime(value: Any) -> datetime:
    """Parses a user supplied instant into an aware UTC datetime.

    This function can handle:
    - str: RFC 3339 / ISO 8601, with or without a trailing 'Z'. A bare date
      such as '2019-01-01' means midnight UTC.
    - datetime: Naive datetimes are assumed to be UTC.

    Args:
        value: The value to parse.

    Returns:
        The parsed instant in UTC.

    Raises:
        InvalidRangeError: If the value cannot be interpreted as an instant.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError as e:
            logger.warning(f"Could not parse datetime string '{value}': {e}")
            err_msg = f"Invalid datetime: {value!r}"
            raise InvalidRangeError(err_msg) from e

    err_msg = f"Unsupported datetime type: {type(value).__name__}"
    raise InvalidRangeError(err_msg)


def to_epoch(dt_obj: datetime, unit: TimestampUnit) -> int:
    """Converts a datetime to an integer epoch timestamp in the given unit.

    Integer arithmetic on the timedelta keeps microsecond values exact, which
    a float `timestamp()` round trip would not for far-off dates.
    """
    delta = ensure_utc(dt_obj) - _EPOCH
    micros = (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
    return micros // (1_000_000 // UNITS_PER_SECOND[unit])


def from_epoch(value: int | float | str, unit: TimestampUnit) -> datetime:
    """Converts an epoch timestamp in the given unit to an aware UTC datetime.

    Raises:
        ValueError: If the value is not numeric or is out of range.
    """
    number = int(value) if isinstance(value, str) else value
    if isinstance(number, bool) or not isinstance(number, int | float):
        err_msg = f"Epoch timestamp must be numeric, got {type(value).__name__}"
        raise ValueError(err_msg)
    try:
        if isinstance(number, int):
            # Exact integer path so that to_epoch(from_epoch(x)) == x.
            return _EPOCH + timedelta(
                microseconds=number * (1_000_000 // UNITS_PER_SECOND[unit])
            )
        return datetime.fromtimestamp(number / UNITS_PER_SECOND[unit], tz=timezone.utc)
    except (OSError, OverflowError) as e:
        err_msg = f"Epoch timestamp '{value}' is out of range."
        raise ValueError(err_msg) from e


def format_rfc3339(dt_obj: datetime) -> str:
    """Formats a datetime as an RFC 3339 string in UTC, e.g. '2019-01-01T00:00:00Z'."""
    return ensure_utc(dt_obj).isoformat().replace("+00:00", "Z")
