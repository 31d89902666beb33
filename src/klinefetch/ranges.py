from dataclasses import dataclass
from datetime import datetime

from klinefetch.errors import InvalidRangeError
from klinefetch.granularity import DEFAULT_CANDLE_CAP, Granularity


@dataclass(frozen=True)
class TimeRange:
    """A closed time interval `[start, end]` answered by one request."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            err_msg = f"Range start {self.start} is after its end {self.end}"
            raise InvalidRangeError(err_msg)


def validate_bounds(start: datetime | None, end: datetime | None) -> None:
    """Rejects a range whose end precedes its start. Open bounds always pass."""
    if start is not None and end is not None and end < start:
        err_msg = f"End date {end} is before start date {start}"
        raise InvalidRangeError(err_msg)


def split_range(
    start: datetime,
    end: datetime,
    granularity: Granularity,
    cap: int = DEFAULT_CANDLE_CAP,
) -> list[TimeRange]:
    """Splits `[start, end]` into sub-ranges that each fit one request.

    Every sub-range spans at most `granularity.max_span(cap)`. The next
    sub-range starts one step after the previous end, because exchanges treat
    the end bound as inclusive and starting exactly at it would fetch the
    boundary candle twice.

    Args:
        start: Start of the requested range.
        end: End of the requested range; must not precede `start`.
        granularity: Candle size, providing the step and the span per request.
        cap: Maximum number of candles returned per request.

    Returns:
        Disjoint sub-ranges in ascending order. Empty when `start == end`.

    Raises:
        InvalidRangeError: If `start` is after `end`.
    """
    validate_bounds(start, end)
    step = granularity.step
    max_span = granularity.max_span(cap)

    ranges: list[TimeRange] = []
    cursor = start
    while cursor < end:
        chunk = TimeRange(cursor, min(cursor + max_span, end))
        ranges.append(chunk)
        cursor = chunk.end + step
    return ranges
