from datetime import datetime
from typing import Any, ClassVar

from klinefetch.exchanges.base import ExchangeAdapter
from klinefetch.models import BinanceKline, CandleRecord
from klinefetch.utils.time import TimestampUnit


class BinanceAdapter(ExchangeAdapter):
    """Adapter for the Binance spot klines REST endpoint.

    Binance accepts every interval in the catalog under the same token, takes
    `startTime`/`endTime` in milliseconds and returns up to `limit` candles
    whose open time falls within the bounds.
    """

    _BASE_API_URL: str = "https://api.binance.com/api/v3"

    record_type: ClassVar[type[CandleRecord]] = BinanceKline
    timestamp_unit: ClassVar[TimestampUnit] = "ms"

    @property
    def venue_name(self) -> str:
        """Returns the unique, lowercase identifier for the exchange."""
        return "binance"

    @property
    def base_url(self) -> str:
        return f"{self._BASE_API_URL}/klines"

    def _base_params(self, symbol: str, interval: str) -> dict[str, Any]:
        # Binance symbols are upper case without separators, e.g. BTCUSDT.
        venue_symbol = symbol.replace("/", "").upper()
        return {"symbol": venue_symbol, "interval": interval, "limit": self.candle_cap}

    def _range_params(self, start: datetime, end: datetime) -> dict[str, Any]:
        return {"startTime": self.encode_time(start), "endTime": self.encode_time(end)}

    def _open_params(
        self, start: datetime | None, end: datetime | None
    ) -> dict[str, Any]:
        if start is not None:
            return {"startTime": self.encode_time(start)}
        if end is not None:
            return {"endTime": self.encode_time(end)}
        return {}
