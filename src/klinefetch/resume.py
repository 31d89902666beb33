"""Resuming a partial download from what is already on disk.

A destination file written by an earlier run holds klines in one
exchange's native layout. Resume reads them back, checks they belong to the
exchange being downloaded, and moves the start of the new range one step
past the last persisted candle so that nothing is fetched twice.
"""

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from klinefetch.errors import InvalidFileError, RecordDecodeError
from klinefetch.granularity import Granularity
from klinefetch.models import RECORD_TYPES, CandleRecord, decode_stored_records
from klinefetch.storage import read_rows
from klinefetch.utils.time import format_rfc3339


def decode_existing(
    rows: list[Any], record_type: type[CandleRecord]
) -> list[CandleRecord]:
    """Decodes persisted rows, trying the expected codec first.

    Binance files from earlier releases with micro- or nanosecond timestamps
    are read back in milliseconds.

    Raises:
        InvalidFileError: If no known codec decodes the rows, or if they only
            decode as another exchange's klines.
    """
    try:
        return decode_stored_records(record_type, rows)
    except RecordDecodeError as e:
        expected_error = e

    for other in RECORD_TYPES:
        if other is record_type:
            continue
        try:
            decode_stored_records(other, rows)
        except RecordDecodeError:
            continue
        err_msg = (
            f"Existing file holds {other.exchange} klines; "
            f"cannot resume a {record_type.exchange} download into it."
        )
        raise InvalidFileError(err_msg)

    err_msg = f"Existing file is not a valid kline file: {expected_error}"
    raise InvalidFileError(err_msg) from expected_error


async def load_existing(
    path: Path | None, record_type: type[CandleRecord]
) -> list[CandleRecord]:
    """Loads previously persisted records, or [] if there are none.

    Raises:
        InvalidFileError: If the file exists but cannot be decoded.
    """
    if path is None:
        return []
    rows = await read_rows(path)
    if not rows:
        return []
    try:
        return decode_existing(rows, record_type)
    except InvalidFileError as e:
        err_msg = f"'{path}': {e}"
        raise InvalidFileError(err_msg) from e


def plan_resume(
    existing: Sequence[CandleRecord],
    requested_start: datetime | None,
    granularity: Granularity,
) -> datetime | None:
    """Computes the effective start of a download.

    With persisted records, the download restarts one step after the last
    record's close time, whatever start was requested. Otherwise the
    requested start is kept.
    """
    if not existing:
        return requested_start

    last_close = existing[-1].close_time()
    effective_start = last_close + granularity.step
    logger.info(
        f"Resuming after last persisted close time {format_rfc3339(last_close)} "
        f"=> {format_rfc3339(effective_start)}"
    )
    return effective_start


def merge_records(
    existing: Sequence[CandleRecord], fetched: Sequence[CandleRecord]
) -> list[CandleRecord]:
    """Appends newly fetched records after the persisted ones."""
    return [*existing, *fetched]
