# src/klinefetch/exchanges/__init__.py
"""This package contains the exchange-specific adapters.

Each adapter knows one exchange's kline endpoint: its query parameter
names, its timestamp precision, its interval naming and the record type
that decodes its responses. All adapters inherit from the `ExchangeAdapter`
abstract base class defined in `klinefetch.exchanges.base`.

The set of exchanges is closed: `Exchange` enumerates them and
`get_adapter` maps each member to its adapter.
"""

from enum import Enum

from klinefetch.errors import UnknownExchangeError
from klinefetch.exchanges.base import ExchangeAdapter, RequestDescriptor
from klinefetch.exchanges.binance import BinanceAdapter
from klinefetch.exchanges.gate import GateAdapter
from klinefetch.granularity import DEFAULT_CANDLE_CAP

__all__ = [
    "BinanceAdapter",
    "Exchange",
    "ExchangeAdapter",
    "GateAdapter",
    "RequestDescriptor",
    "get_adapter",
]


class Exchange(str, Enum):
    """The exchanges klines can be downloaded from."""

    BINANCE = "binance"
    GATE = "gate"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: str) -> "Exchange":
        """Looks up an exchange by case-insensitive name.

        Raises:
            UnknownExchangeError: If no such exchange is supported.
        """
        try:
            return cls(name.strip().lower())
        except ValueError:
            supported = ", ".join(e.value for e in cls)
            err_msg = f"Unknown exchange '{name}'. Supported: {supported}"
            raise UnknownExchangeError(err_msg) from None


_ADAPTERS: dict[Exchange, type[ExchangeAdapter]] = {
    Exchange.BINANCE: BinanceAdapter,
    Exchange.GATE: GateAdapter,
}


def get_adapter(
    exchange: Exchange | str, candle_cap: int = DEFAULT_CANDLE_CAP
) -> ExchangeAdapter:
    """Returns a fresh adapter for the given exchange."""
    if not isinstance(exchange, Exchange):
        exchange = Exchange.parse(exchange)
    return _ADAPTERS[exchange](candle_cap=candle_cap)
