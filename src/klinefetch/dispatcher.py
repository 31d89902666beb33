import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Final

import httpx
from loguru import logger

from klinefetch.errors import RecordDecodeError
from klinefetch.exchanges.base import RequestDescriptor
from klinefetch.models import CandleRecord, decode_records

# --- Defaults matching the reference download behaviour ---
DEFAULT_CONCURRENCY_LIMIT: Final[int] = 90
DEFAULT_RETRY_LIMIT: Final[int] = 3
DEFAULT_RETRY_PAUSE_S: Final[float] = 3.0

# Failures that are retried and, once attempts run out, reported per request.
RETRYABLE_ERRORS: Final = (httpx.HTTPError, RecordDecodeError)


@dataclass(frozen=True)
class FetchOutcome:
    """The final result of one request: its records or the last error."""

    index: int
    request: RequestDescriptor
    records: list[CandleRecord] | None = None
    error: Exception | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        """True if the request produced records (possibly an empty list)."""
        return self.error is None


ProgressCallback = Callable[[int, int, FetchOutcome], None]


class FetchDispatcher:
    """Runs kline requests with bounded concurrency, retries and stable ordering.

    At most `concurrency_limit` requests are in flight at once; further
    requests start as earlier ones complete. Each request is attempted up to
    `retry_limit` times with a fixed pause in between. A request that keeps
    failing yields a failed `FetchOutcome` and never aborts the others.

    The outcomes are returned index-aligned with the input, whatever order the
    requests actually complete in, so callers can concatenate them in
    chronological order without sorting.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        record_type: type[CandleRecord],
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
        retry_limit: int = DEFAULT_RETRY_LIMIT,
        retry_pause: float = DEFAULT_RETRY_PAUSE_S,
    ) -> None:
        """Initializes the dispatcher.

        Args:
            http_client: A shared httpx.AsyncClient used for every request.
            record_type: The record class decoding this exchange's responses.
            concurrency_limit: Maximum number of requests in flight.
            retry_limit: Total attempts per request (at least 1).
            retry_pause: Seconds to wait between two attempts.
        """
        if concurrency_limit <= 0:
            err_msg = "Concurrency limit must be a positive integer."
            raise ValueError(err_msg)
        if retry_limit <= 0:
            err_msg = "Retry limit must be a positive integer."
            raise ValueError(err_msg)
        if retry_pause < 0:
            err_msg = "Retry pause must not be negative."
            raise ValueError(err_msg)

        self.http_client = http_client
        self.record_type = record_type
        self.concurrency_limit = concurrency_limit
        self.retry_limit = retry_limit
        self.retry_pause = retry_pause

    async def run(
        self,
        requests: Sequence[RequestDescriptor],
        on_progress: ProgressCallback | None = None,
    ) -> list[FetchOutcome]:
        """Executes all requests and returns one outcome per request, in input order.

        Args:
            requests: The ordered requests to execute.
            on_progress: Called as `(done, total, outcome)` once per resolved
                request, successful or not.

        Returns:
            Outcomes where index `i` always answers `requests[i]`.
        """
        total = len(requests)
        slots: list[FetchOutcome | None] = [None] * total
        if total == 0:
            return []

        semaphore = asyncio.Semaphore(self.concurrency_limit)
        tasks = [
            asyncio.create_task(self._fetch_slot(index, request, semaphore))
            for index, request in enumerate(requests)
        ]

        # Only this loop writes the slots and the progress counter.
        done = 0
        for next_completed in asyncio.as_completed(tasks):
            outcome = await next_completed
            slots[outcome.index] = outcome
            done += 1
            if on_progress is not None:
                on_progress(done, total, outcome)

        return [outcome for outcome in slots if outcome is not None]

    async def _fetch_slot(
        self,
        index: int,
        request: RequestDescriptor,
        semaphore: asyncio.Semaphore,
    ) -> FetchOutcome:
        async with semaphore:
            return await self._fetch_with_retry(index, request)

    async def _fetch_with_retry(
        self, index: int, request: RequestDescriptor
    ) -> FetchOutcome:
        """Attempts one request up to `retry_limit` times."""
        last_error: Exception | None = None
        for attempt in range(1, self.retry_limit + 1):
            try:
                records = await self._fetch_once(request)
            except RETRYABLE_ERRORS as e:
                last_error = e
                logger.warning(
                    f"Attempt {attempt}/{self.retry_limit} failed for "
                    f"{request.describe()}: {type(e).__name__}: {e}"
                )
                if attempt < self.retry_limit:
                    await asyncio.sleep(self.retry_pause)
                continue

            logger.debug(
                f"Fetched {len(records)} klines for {request.describe()} "
                f"(attempt {attempt})."
            )
            return FetchOutcome(
                index=index, request=request, records=records, attempts=attempt
            )

        logger.error(
            f"Giving up on {request.describe()} after {self.retry_limit} "
            f"attempts: {last_error}"
        )
        return FetchOutcome(
            index=index, request=request, error=last_error, attempts=self.retry_limit
        )

    async def _fetch_once(self, request: RequestDescriptor) -> list[CandleRecord]:
        response = await self.http_client.get(request.url)
        response.raise_for_status()
        return decode_records(self.record_type, response.content)
