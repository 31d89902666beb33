#!/usr/bin/env python
r"""A command-line utility to download historical candlestick data.

This script is useful for offline analysis, backtesting, or pre-populating
a data store. It runs the same entry point as the installed `klinefetch`
command, so it can be used straight from a source checkout.

Usage:
    python scripts/download_historical.py -m <EXCHANGE> -s <SYMBOL> \
        -i <INTERVAL> [-f START_DATE] [-t END_DATE] [-o OUTPUT_FILE]

Example:
    python scripts/download_historical.py -m gate -s BTC_USDT -i 1h \
        -f 2023-01-01T00:00:00Z -t 2023-06-01T00:00:00Z -o btc_usdt_1h.json
"""

import sys
from pathlib import Path

# Add `src` to the Python path so the script runs from the repository root
# without installing the package.
SRC_DIR = Path(__file__).resolve().parent.parent / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from klinefetch.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
