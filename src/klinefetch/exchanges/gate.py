from datetime import datetime
from typing import Any, ClassVar

from klinefetch.exchanges.base import ExchangeAdapter
from klinefetch.granularity import Granularity
from klinefetch.models import CandleRecord, GateKline
from klinefetch.utils.time import TimestampUnit


class GateAdapter(ExchangeAdapter):
    """Adapter for the Gate.io spot candlesticks REST endpoint.

    Gate takes `from`/`to` in seconds and rejects `limit` when both bounds
    are present, so `limit` is only sent for the default most-recent window.
    """

    _BASE_API_URL: str = "https://api.gateio.ws/api/v4"

    record_type: ClassVar[type[CandleRecord]] = GateKline
    timestamp_unit: ClassVar[TimestampUnit] = "s"

    _INTERVAL_MAP: ClassVar[dict[Granularity, str]] = {
        Granularity.M1: "1m",
        Granularity.M5: "5m",
        Granularity.M15: "15m",
        Granularity.M30: "30m",
        Granularity.H1: "1h",
        Granularity.H4: "4h",
        Granularity.H8: "8h",
        Granularity.D1: "1d",
        Granularity.W1: "7d",
        Granularity.MO1: "30d",
    }

    @property
    def venue_name(self) -> str:
        """Returns the unique, lowercase identifier for the exchange."""
        return "gate"

    @property
    def base_url(self) -> str:
        return f"{self._BASE_API_URL}/spot/candlesticks"

    @property
    def supported_intervals(self) -> dict[Granularity, str]:
        return self._INTERVAL_MAP

    def _base_params(self, symbol: str, interval: str) -> dict[str, Any]:
        # Gate currency pairs are written BASE_QUOTE, e.g. BTC_USDT.
        venue_symbol = symbol.replace("/", "_").replace("-", "_").upper()
        return {"currency_pair": venue_symbol, "interval": interval}

    def _range_params(self, start: datetime, end: datetime) -> dict[str, Any]:
        return {"from": self.encode_time(start), "to": self.encode_time(end)}

    def _open_params(
        self, start: datetime | None, end: datetime | None
    ) -> dict[str, Any]:
        if start is not None:
            return {"from": self.encode_time(start)}
        if end is not None:
            return {"to": self.encode_time(end)}
        return {"limit": self.candle_cap}
