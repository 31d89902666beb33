# src/klinefetch/__init__.py
"""klinefetch: chunked, concurrent download of historical exchange klines.

The package splits an arbitrary time range into requests that fit each
exchange's per-request candle cap, fetches them concurrently over asyncio,
decodes every exchange's own wire layout and can resume a previous partial
download from the last persisted candle.

Key modules:
- `exchanges`: Per-exchange request builders (Binance, Gate.io).
- `models`: Exchange-specific candle records and their codecs.
- `dispatcher`: The bounded-concurrency, order-preserving fetch engine.
- `downloader`: The end-to-end pipeline tying the pieces together.
"""

# The version is managed in pyproject.toml and is dynamically
# retrieved here using importlib.metadata.
import importlib.metadata

try:
    __version__: str = importlib.metadata.version("klinefetch")
except importlib.metadata.PackageNotFoundError:
    # Source checkout without an installed distribution.
    __version__ = "0.0.0-dev"
