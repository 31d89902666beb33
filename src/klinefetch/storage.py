import json
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os
from loguru import logger

from klinefetch.errors import InvalidFileError
from klinefetch.models import CandleRecord, encode_records


async def read_rows(path: Path) -> list[Any] | None:
    """Reads a persisted kline file as raw JSON rows.

    Uses `aiofiles` so the event loop is never blocked by disk reads.

    Args:
        path: The JSON file to read.

    Returns:
        The rows of the JSON array, or None if the file does not exist.

    Raises:
        InvalidFileError: If the file cannot be read or is not a JSON array.
    """
    if not await aiofiles.os.path.exists(path):
        logger.debug(f"No existing data at '{path}'.")
        return None

    try:
        async with aiofiles.open(path, encoding="utf-8") as f:
            text = await f.read()
    except OSError as e:
        err_msg = f"Could not read '{path}': {e}"
        raise InvalidFileError(err_msg) from e

    if not text.strip():
        return []

    try:
        payload = json.loads(text)
    except ValueError as e:
        err_msg = f"'{path}' is not valid JSON: {e}"
        raise InvalidFileError(err_msg) from e

    if not isinstance(payload, list):
        err_msg = f"'{path}' must hold a JSON array of klines."
        raise InvalidFileError(err_msg)
    return payload


async def write_records(path: Path, records: list[CandleRecord]) -> None:
    """Writes records as a JSON array of arrays in their native wire layout.

    The file is written to a temporary sibling first and then renamed, so an
    interrupted write never leaves a truncated file behind for resume to trip
    over.

    Args:
        path: The destination file. Parent directories are created.
        records: The records to persist, already in chronological order.
    """
    await aiofiles.os.makedirs(path.parent, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.tmp")
    payload = json.dumps(encode_records(records), separators=(",", ":"))

    async with aiofiles.open(tmp_path, mode="w", encoding="utf-8") as f:
        await f.write(payload)
    await aiofiles.os.replace(tmp_path, path)
    logger.info(f"Wrote {len(records)} klines to '{path}'.")
