from datetime import timedelta
from enum import Enum
from typing import Final

from klinefetch.errors import UnsupportedGranularityError

# Most exchanges return at most this many candles per kline request.
DEFAULT_CANDLE_CAP: Final[int] = 1000


class Granularity(Enum):
    """The supported candle sizes, keyed by their interval token.

    Each member carries its token (e.g. '1h') and its step duration. Calendar
    months are approximated with a fixed 30-day step.
    """

    S1 = ("1s", timedelta(seconds=1))
    M1 = ("1m", timedelta(minutes=1))
    M3 = ("3m", timedelta(minutes=3))
    M5 = ("5m", timedelta(minutes=5))
    M15 = ("15m", timedelta(minutes=15))
    M30 = ("30m", timedelta(minutes=30))
    H1 = ("1h", timedelta(hours=1))
    H2 = ("2h", timedelta(hours=2))
    H4 = ("4h", timedelta(hours=4))
    H6 = ("6h", timedelta(hours=6))
    H8 = ("8h", timedelta(hours=8))
    H12 = ("12h", timedelta(hours=12))
    D1 = ("1d", timedelta(days=1))
    D3 = ("3d", timedelta(days=3))
    W1 = ("1w", timedelta(weeks=1))
    MO1 = ("1M", timedelta(days=30))

    def __init__(self, token: str, step: timedelta) -> None:
        self.token = token
        self.step = step

    def __str__(self) -> str:
        return self.token

    def max_span(self, cap: int = DEFAULT_CANDLE_CAP) -> timedelta:
        """The longest time range a single request of `cap` candles can cover."""
        if cap <= 0:
            err_msg = f"Candle cap must be a positive integer, got {cap}"
            raise ValueError(err_msg)
        return self.step * cap

    @classmethod
    def from_token(cls, token: str) -> "Granularity":
        """Looks up a granularity by its interval token.

        Tokens are case sensitive: '1m' is one minute, '1M' one month.

        Raises:
            UnsupportedGranularityError: If the token is unknown.
        """
        for member in cls:
            if member.token == token:
                return member
        supported = ", ".join(m.token for m in cls)
        err_msg = f"Unsupported interval '{token}'. Supported: {supported}"
        raise UnsupportedGranularityError(err_msg)
