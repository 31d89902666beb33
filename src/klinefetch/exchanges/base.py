import abc
from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar

import httpx
from loguru import logger

from klinefetch.errors import UnsupportedGranularityError
from klinefetch.granularity import DEFAULT_CANDLE_CAP, Granularity
from klinefetch.models import CandleRecord
from klinefetch.ranges import TimeRange, split_range, validate_bounds
from klinefetch.utils.time import TimestampUnit, format_rfc3339, to_epoch


@dataclass(frozen=True)
class RequestDescriptor:
    """A fully formed kline request and the time range it answers for.

    `time_range` is None for open-ended requests, where the exchange's own
    default window applies.
    """

    url: str
    time_range: TimeRange | None = None

    def describe(self) -> str:
        """A short human readable label for log messages."""
        if self.time_range is None:
            return "open-ended window"
        return (
            f"{format_rfc3339(self.time_range.start)} -> "
            f"{format_rfc3339(self.time_range.end)}"
        )


class ExchangeAdapter(abc.ABC):
    """An abstract base class for all exchange adapters.

    An adapter turns (symbol, granularity, optional start, optional end) into
    the ordered list of requests needed to cover the range, and names the
    record type that decodes the exchange's responses.

    Subclasses supply the exchange-specific details: endpoint, query
    parameter names, timestamp precision and interval naming.
    """

    record_type: ClassVar[type[CandleRecord]]
    timestamp_unit: ClassVar[TimestampUnit]

    def __init__(self, candle_cap: int = DEFAULT_CANDLE_CAP) -> None:
        """Initializes the adapter.

        Args:
            candle_cap: Maximum number of candles the exchange returns per request.
        """
        if candle_cap < 2:
            err_msg = "Candle cap must be at least 2."
            raise ValueError(err_msg)
        self.candle_cap = candle_cap

    @property
    @abc.abstractmethod
    def venue_name(self) -> str:
        """A unique, lowercase identifier for the exchange (e.g., 'binance')."""
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def base_url(self) -> str:
        """The kline endpoint of the exchange's REST API."""
        raise NotImplementedError

    @property
    def supported_intervals(self) -> dict[Granularity, str]:
        """Maps each granularity the exchange offers to its native interval token."""
        return {g: g.token for g in Granularity}

    def interval_for(self, granularity: Granularity) -> str:
        """Returns the exchange's interval token for a granularity.

        Raises:
            UnsupportedGranularityError: If the exchange does not offer it.
        """
        try:
            return self.supported_intervals[granularity]
        except KeyError:
            err_msg = f"Unsupported interval for {self.venue_name}: {granularity.token}"
            raise UnsupportedGranularityError(err_msg) from None

    def encode_time(self, dt_obj: datetime) -> int:
        """Encodes an instant in the exchange's timestamp precision."""
        return to_epoch(dt_obj, self.timestamp_unit)

    def build_requests(
        self,
        symbol: str,
        granularity: Granularity,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[RequestDescriptor]:
        """Builds the ordered requests covering the given range.

        - Both bounds: one request per sub-range from `split_range`, each
          holding at most `candle_cap` candles.
        - Only `start`: a single request reading forward from it.
        - Only `end`: a single request reading backward from it.
        - Neither: a single request for the exchange's most recent candles.

        Raises:
            InvalidRangeError: If both bounds are given and `end` precedes `start`.
            UnsupportedGranularityError: If the exchange lacks the granularity.
        """
        validate_bounds(start, end)
        base_params = self._base_params(symbol, self.interval_for(granularity))

        if start is not None and end is not None:
            # A closed range spanning n steps holds n + 1 candles.
            chunks = split_range(start, end, granularity, self.candle_cap - 1)
            logger.debug(
                f"[{self.venue_name}] Split {format_rfc3339(start)} -> "
                f"{format_rfc3339(end)} into {len(chunks)} requests."
            )
            return [
                self._descriptor(
                    base_params | self._range_params(chunk.start, chunk.end), chunk
                )
                for chunk in chunks
            ]

        return [
            self._descriptor(base_params | self._open_params(start, end), None)
        ]

    def _descriptor(
        self, params: dict[str, Any], time_range: TimeRange | None
    ) -> RequestDescriptor:
        url = httpx.URL(self.base_url, params=params)
        return RequestDescriptor(url=str(url), time_range=time_range)

    @abc.abstractmethod
    def _base_params(self, symbol: str, interval: str) -> dict[str, Any]:
        """Query parameters shared by every request for this symbol and interval."""
        raise NotImplementedError

    @abc.abstractmethod
    def _range_params(self, start: datetime, end: datetime) -> dict[str, Any]:
        """Query parameters bounding one sub-range."""
        raise NotImplementedError

    @abc.abstractmethod
    def _open_params(
        self, start: datetime | None, end: datetime | None
    ) -> dict[str, Any]:
        """Query parameters for an open-ended request (at most one bound set)."""
        raise NotImplementedError
