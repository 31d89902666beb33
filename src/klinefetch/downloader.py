from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import httpx
from loguru import logger

from klinefetch.config import FetchSettings
from klinefetch.dispatcher import FetchDispatcher, FetchOutcome, ProgressCallback
from klinefetch.exchanges import Exchange, get_adapter
from klinefetch.granularity import Granularity
from klinefetch.models import CandleRecord
from klinefetch.ranges import validate_bounds
from klinefetch.resume import load_existing, merge_records, plan_resume
from klinefetch.storage import write_records
from klinefetch.utils.time import format_rfc3339


@dataclass(frozen=True)
class DownloadRequest:
    """What to download, and where to persist it."""

    exchange: Exchange
    symbol: str
    granularity: Granularity
    start: datetime | None = None
    end: datetime | None = None
    output_path: Path | None = None


@dataclass
class DownloadResult:
    """The merged records of a run and what went wrong along the way."""

    records: list[CandleRecord]
    fetched: int = 0
    requests: int = 0
    effective_start: datetime | None = None
    failures: list[FetchOutcome] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True if every request succeeded."""
        return not self.failures


def aggregate_outcomes(
    outcomes: list[FetchOutcome], venue: str
) -> tuple[list[CandleRecord], list[FetchOutcome]]:
    """Concatenates successful outcomes in order and collects the failures.

    A failed sub-range leaves a gap in the returned records; it is logged so
    the operator can re-run the download.
    """
    records: list[CandleRecord] = []
    failures: list[FetchOutcome] = []
    for outcome in outcomes:
        if outcome.ok and outcome.records is not None:
            records.extend(outcome.records)
        else:
            failures.append(outcome)
            logger.error(
                f"[{venue}] Missing klines for {outcome.request.describe()}: "
                f"{outcome.error}"
            )
    return records, failures


async def download(
    request: DownloadRequest,
    settings: FetchSettings | None = None,
    http_client: httpx.AsyncClient | None = None,
    on_progress: ProgressCallback | None = None,
) -> DownloadResult:
    """Downloads klines for one symbol, resuming from `output_path` if it exists.

    Input errors (an end before the start, an undecodable existing file, an
    interval the exchange lacks) are raised before any network activity.
    Per-request failures are retried, then reported in the result without
    aborting the run.

    Args:
        request: What to download.
        settings: Dispatcher settings. Defaults are used when omitted.
        http_client: A shared client. One is created (and closed) if omitted.
        on_progress: Forwarded to the dispatcher, once per resolved request.

    Returns:
        The persisted-plus-fetched records in chronological order.
    """
    settings = settings or FetchSettings()
    settings.validate()
    validate_bounds(request.start, request.end)

    adapter = get_adapter(request.exchange)
    venue = adapter.venue_name
    adapter.interval_for(request.granularity)

    existing = await load_existing(request.output_path, adapter.record_type)
    if existing:
        logger.info(f"[{venue}] Found {len(existing)} persisted klines.")
    start = plan_resume(existing, request.start, request.granularity)

    if start is not None and request.end is not None and start > request.end:
        logger.info(
            f"[{venue}] Already up to date: next kline at {format_rfc3339(start)} "
            f"is past the requested end {format_rfc3339(request.end)}; "
            "leaving the output file untouched."
        )
        return DownloadResult(records=list(existing), effective_start=start)

    requests = adapter.build_requests(
        request.symbol, request.granularity, start, request.end
    )
    logger.info(
        f"[{venue}] Fetching {request.symbol} {request.granularity} klines "
        f"with {len(requests)} request(s)."
    )

    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(
        timeout=settings.request_timeout_s,
        limits=httpx.Limits(max_connections=settings.concurrency_limit),
    )
    try:
        dispatcher = FetchDispatcher(
            client,
            adapter.record_type,
            concurrency_limit=settings.concurrency_limit,
            retry_limit=settings.retry_limit,
            retry_pause=settings.retry_pause_s,
        )
        outcomes = await dispatcher.run(requests, on_progress=on_progress)
    finally:
        if owns_client:
            await client.aclose()

    fetched, failures = aggregate_outcomes(outcomes, venue)
    records = merge_records(existing, fetched)

    if failures:
        logger.warning(
            f"[{venue}] {len(failures)}/{len(requests)} request(s) failed; "
            "the output has gaps. Re-run to resume."
        )
    logger.success(f"[{venue}] Fetched {len(fetched)} klines for {request.symbol}.")

    if request.output_path is not None:
        await write_records(request.output_path, records)

    return DownloadResult(
        records=records,
        fetched=len(fetched),
        requests=len(requests),
        effective_start=start,
        failures=failures,
    )
