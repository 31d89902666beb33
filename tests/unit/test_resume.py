import json
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from klinefetch.errors import InvalidFileError
from klinefetch.granularity import Granularity
from klinefetch.models import BinanceKline, GateKline, decode_records
from klinefetch.resume import load_existing, merge_records, plan_resume
from klinefetch.storage import read_rows, write_records

OPEN_MS = 1_546_300_800_000  # 2019-01-01T00:00:00Z


@pytest.fixture()
def binance_file(tmp_path: Path, make_binance_row: Callable[..., list[Any]]) -> Path:
    """A persisted file holding three consecutive 1m Binance klines."""
    path = tmp_path / "btcusdt_1m.json"
    rows = [make_binance_row(OPEN_MS + i * 60_000) for i in range(3)]
    path.write_text(json.dumps(rows), encoding="utf-8")
    return path


@pytest.mark.asyncio
async def test_resume_starts_one_step_after_last_close(binance_file: Path) -> None:
    """Tests that an earlier requested start is overridden by the persisted data."""
    existing = await load_existing(binance_file, BinanceKline)
    last_close = existing[-1].close_time()
    requested_start = datetime(2018, 12, 1, tzinfo=timezone.utc)

    effective = plan_resume(existing, requested_start, Granularity.M1)

    assert requested_start < last_close
    assert effective == last_close + timedelta(minutes=1)


def test_without_records_the_requested_start_is_kept() -> None:
    """Tests that nothing persisted means nothing changes."""
    requested_start = datetime(2019, 1, 1, tzinfo=timezone.utc)
    assert plan_resume([], requested_start, Granularity.H1) == requested_start
    assert plan_resume([], None, Granularity.H1) is None


def test_gate_resume_lands_on_next_bucket(
    make_gate_row: Callable[..., list[str]],
) -> None:
    """Tests that Gate's close time (the bucket start) advances exactly one bucket."""
    existing = decode_records(GateKline, [make_gate_row(1_546_300_800)])
    effective = plan_resume(existing, None, Granularity.H1)
    assert effective == datetime(2019, 1, 1, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_missing_or_empty_file_has_no_records(tmp_path: Path) -> None:
    """Tests the no-destination, missing-file and empty-array cases."""
    assert await load_existing(None, BinanceKline) == []
    assert await load_existing(tmp_path / "absent.json", BinanceKline) == []

    empty = tmp_path / "empty.json"
    empty.write_text("[]", encoding="utf-8")
    assert await load_existing(empty, BinanceKline) == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content",
    ["{not json", '{"klines": []}', "[[1, 2]]", '[["a", "b", "c"]]'],
)
async def test_undecodable_file_is_an_input_error(tmp_path: Path, content: str) -> None:
    """Tests that garbage on disk aborts instead of being ignored."""
    path = tmp_path / "broken.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(InvalidFileError):
        await load_existing(path, BinanceKline)


@pytest.mark.asyncio
async def test_file_from_another_exchange_is_rejected(binance_file: Path) -> None:
    """Tests that Binance data is never extended with Gate klines."""
    with pytest.raises(InvalidFileError, match="holds binance klines"):
        await load_existing(binance_file, GateKline)


def test_merge_appends_fetched_after_existing(
    make_binance_row: Callable[..., list[Any]],
) -> None:
    """Tests that merging keeps order and does not de-duplicate."""
    old = decode_records(BinanceKline, [make_binance_row(OPEN_MS)])
    new = decode_records(BinanceKline, [make_binance_row(OPEN_MS + 60_000)] * 2)
    merged = merge_records(old, new)
    assert merged == [*old, *new]
    assert len(merged) == 3


@pytest.mark.asyncio
async def test_write_then_read_round_trips(
    tmp_path: Path, make_gate_row: Callable[..., list[str]]
) -> None:
    """Tests that what is written is read back byte-for-byte as rows."""
    records = decode_records(
        GateKline, [make_gate_row(1_546_300_800), make_gate_row(1_546_300_860, with_window=False)]
    )
    path = tmp_path / "nested" / "dir" / "gate.json"

    await write_records(path, records)
    rows = await read_rows(path)

    assert rows == [r.to_row() for r in records]
    assert decode_records(GateKline, rows or []) == records
    assert not (path.parent / "gate.json.tmp").exists()


@pytest.mark.asyncio
@pytest.mark.parametrize("scale", [1_000, 1_000_000], ids=["micros", "nanos"])
async def test_older_binance_files_with_finer_timestamps_resume(
    tmp_path: Path, make_binance_row: Callable[..., list[Any]], scale: int
) -> None:
    """Tests that files with micro- or nanosecond times resume in milliseconds."""
    rows: list[list[Any]] = []
    for i in range(2):
        row = make_binance_row(OPEN_MS + i * 60_000)
        row[0] *= scale
        row[6] = (row[6] + 1) * scale - 1
        rows.append(row)
    path = tmp_path / "legacy.json"
    path.write_text(json.dumps(rows), encoding="utf-8")

    existing = await load_existing(path, BinanceKline)

    assert [r.to_row()[0] for r in existing] == [OPEN_MS, OPEN_MS + 60_000]
    assert existing[-1].close_time() == datetime(
        2019, 1, 1, 0, 1, 59, 999_000, tzinfo=timezone.utc
    )
    effective = plan_resume(existing, None, Granularity.M1)
    assert effective == datetime(2019, 1, 1, 0, 2, 59, 999_000, tzinfo=timezone.utc)
