r"""Command-line interface for downloading historical klines.

Usage:
    klinefetch -s BTCUSDT -i 1h
    klinefetch -m binance -s BTCUSDT -i 1m \
        --from-date 2019-01-01T00:00:00Z --to-date 2019-03-01T00:00:00Z \
        -o output.json

Re-running the second command resumes after the last kline stored in
`output.json`.
"""

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from pathlib import Path

from loguru import logger

from klinefetch import __version__
from klinefetch.config import Settings, load_config
from klinefetch.dispatcher import FetchOutcome
from klinefetch.downloader import DownloadRequest, download
from klinefetch.errors import KlineFetchError
from klinefetch.exchanges import Exchange
from klinefetch.granularity import Granularity
from klinefetch.logging_config import setup_logging
from klinefetch.models import encode_records
from klinefetch.utils.time import parse_datetime

EXIT_OK = 0
EXIT_INPUT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    """Builds the argument parser."""
    parser = argparse.ArgumentParser(
        prog="klinefetch",
        description=(
            "Fetch historical candlestick (kline) data from an exchange. "
            "Large ranges are split to respect the per-request candle cap and "
            "fetched concurrently. Results are saved as a JSON array when "
            "--output-file is given, and an existing file is resumed."
        ),
    )
    parser.add_argument(
        "-m",
        "--market",
        default=Exchange.BINANCE.value,
        choices=[e.value for e in Exchange],
        help="Exchange to fetch from (default: %(default)s).",
    )
    parser.add_argument(
        "-s", "--symbol", required=True, help="Trading pair, e.g. BTCUSDT or BTC_USDT."
    )
    parser.add_argument(
        "-i",
        "--interval",
        required=True,
        choices=[g.token for g in Granularity],
        help="Kline interval.",
    )
    parser.add_argument(
        "-f", "--from-date", help="Start date (UTC, RFC 3339), e.g. 2019-01-01T00:00:00Z."
    )
    parser.add_argument("-t", "--to-date", help="End date (UTC, RFC 3339).")
    parser.add_argument(
        "-o", "--output-file", type=Path, help="JSON file to save (and resume) klines."
    )
    parser.add_argument(
        "-r",
        "--retry-counter",
        type=int,
        help="Attempts per request before giving up (overrides config).",
    )
    parser.add_argument(
        "-c",
        "--concurrency",
        type=int,
        help="Maximum concurrent requests (overrides config).",
    )
    parser.add_argument(
        "--retry-pause",
        type=float,
        help="Seconds to wait between attempts (overrides config).",
    )
    parser.add_argument("--config", type=Path, help="Path to a TOML config file.")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log progress per request."
    )
    parser.add_argument("--version", action="version", version=__version__)
    return parser


def _progress_logger(done: int, total: int, outcome: FetchOutcome) -> None:
    percent = done * 100.0 / total
    status = "ok" if outcome.ok else "FAILED"
    logger.info(f"{done}/{total} ({percent:.3f}%) {outcome.request.describe()} {status}")


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    request = DownloadRequest(
        exchange=Exchange.parse(args.market),
        symbol=args.symbol,
        granularity=Granularity.from_token(args.interval),
        start=parse_datetime(args.from_date) if args.from_date else None,
        end=parse_datetime(args.to_date) if args.to_date else None,
        output_path=args.output_file,
    )
    result = await download(
        request,
        settings=settings.fetch,
        on_progress=_progress_logger if args.verbose else None,
    )
    if request.output_path is None:
        print(json.dumps(encode_records(result.records)))
    if not result.complete:
        logger.warning(
            f"Finished with {len(result.failures)} failed request(s) out of "
            f"{result.requests}."
        )
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of the `klinefetch` command.

    Returns:
        0 on completion (even with failed sub-ranges), 2 on invalid input.
    """
    args = build_parser().parse_args(argv)

    try:
        settings = load_config(args.config) if args.config else Settings.get_instance()
        if args.retry_counter is not None:
            settings.fetch.retry_limit = args.retry_counter
        if args.concurrency is not None:
            settings.fetch.concurrency_limit = args.concurrency
        if args.retry_pause is not None:
            settings.fetch.retry_pause_s = args.retry_pause
        settings.fetch.validate()
    except KlineFetchError as e:
        logger.error(str(e))
        return EXIT_INPUT_ERROR

    general = settings.general
    setup_logging(
        console_level=general.log_level_console,
        file_level=general.log_level_file,
        log_dir=Path(general.log_directory) if general.log_directory else None,
    )

    try:
        return asyncio.run(_run(args, settings))
    except KlineFetchError as e:
        logger.error(str(e))
        return EXIT_INPUT_ERROR


if __name__ == "__main__":
    sys.exit(main())
