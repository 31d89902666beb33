from collections.abc import Callable
from typing import Any

import pytest


def binance_row(open_ms: int, step_ms: int = 60_000) -> list[Any]:
    """Builds a Binance kline row as the REST API returns it."""
    return [
        open_ms,
        "100.50000000",
        "101.00000000",
        "99.75000000",
        "100.25000000",
        "12.34500000",
        open_ms + step_ms - 1,
        "1237.12345600",
        42,
        "6.10000000",
        "611.05000000",
        "0",
    ]


def gate_row(time_s: int, *, with_window: bool = True) -> list[str]:
    """Builds a Gate candlestick row as the REST API returns it."""
    row = [
        str(time_s),
        "1237.1234",
        "100.25",
        "101.0",
        "99.75",
        "100.5",
        "12.345",
    ]
    if with_window:
        row.append("true")
    return row


@pytest.fixture()
def make_binance_row() -> Callable[..., list[Any]]:
    """Provides the Binance row factory."""
    return binance_row


@pytest.fixture()
def make_gate_row() -> Callable[..., list[str]]:
    """Provides the Gate row factory."""
    return gate_row
