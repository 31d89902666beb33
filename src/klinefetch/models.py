import abc
import json
from dataclasses import astuple, dataclass
from datetime import datetime
from typing import Any, ClassVar, Self

from klinefetch.errors import RecordDecodeError
from klinefetch.utils.time import TimestampUnit, from_epoch


def _as_float(value: Any) -> float:
    """Coerces a number or numeric string to float, rejecting booleans."""
    if isinstance(value, bool):
        err_msg = f"Expected a number, got {value!r}"
        raise TypeError(err_msg)
    return float(value)


def _as_int(value: Any) -> int:
    """Coerces an integral number or numeric string to int."""
    if isinstance(value, bool):
        err_msg = f"Expected an integer, got {value!r}"
        raise TypeError(err_msg)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            value = float(value)
    if isinstance(value, float):
        if not value.is_integer():
            err_msg = f"Expected an integer, got {value!r}"
            raise ValueError(err_msg)
        return int(value)
    return int(value)


# Epoch values at or above these are read as micro- or nanoseconds. In
# milliseconds both lie thousands of years ahead.
_MICROS_FLOOR = 10**14
_NANOS_FLOOR = 10**17


def _stored_ms(value: Any) -> Any:
    """Scales a persisted epoch value in us or ns down to milliseconds."""
    if isinstance(value, bool) or not isinstance(value, int):
        return value
    if value >= _NANOS_FLOOR:
        return value // 1_000_000
    if value >= _MICROS_FLOOR:
        return value // 1_000
    return value


def _as_bool(value: Any) -> bool:
    """Coerces JSON booleans and 'true'/'false' strings to bool."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in {"true", "false"}:
        return value.lower() == "true"
    err_msg = f"Expected a boolean, got {value!r}"
    raise ValueError(err_msg)


class CandleRecord(abc.ABC):
    """Common interface of every exchange-specific candle record.

    Records keep their exchange's native field set and order. Only the open
    and close instants are uniformly available, which is all the resume and
    ordering logic needs.
    """

    exchange: ClassVar[str]
    timestamp_unit: ClassVar[TimestampUnit]
    # Accepted row lengths, in the exchange's wire layout.
    row_lengths: ClassVar[tuple[int, ...]]

    @abc.abstractmethod
    def open_time(self) -> datetime:
        """The instant the candle's bucket opens."""
        raise NotImplementedError

    @abc.abstractmethod
    def close_time(self) -> datetime:
        """The instant reported as the candle's close."""
        raise NotImplementedError

    @classmethod
    @abc.abstractmethod
    def _from_fields(cls, row: list[Any]) -> Self:
        """Builds a record from a row already checked for length."""
        raise NotImplementedError

    @abc.abstractmethod
    def to_row(self) -> list[Any]:
        """Serializes the record back into its exchange's wire layout."""
        raise NotImplementedError

    @classmethod
    def from_row(cls, row: Any) -> Self:
        """Decodes one wire array into a record.

        Raises:
            RecordDecodeError: If the row does not match this exchange's layout.
        """
        if not isinstance(row, list) or len(row) not in cls.row_lengths:
            err_msg = (
                f"[{cls.exchange}] Expected an array of "
                f"{' or '.join(map(str, cls.row_lengths))} fields, got {row!r}"
            )
            raise RecordDecodeError(err_msg)
        try:
            return cls._from_fields(row)
        except (TypeError, ValueError) as e:
            err_msg = f"[{cls.exchange}] Malformed kline {row!r}: {e}"
            raise RecordDecodeError(err_msg) from e

    @classmethod
    def from_stored_row(cls, row: Any) -> Self:
        """Decodes one row read back from a file written by an earlier run.

        Only differs from `from_row` for layouts whose persisted form changed.
        """
        return cls.from_row(row)


@dataclass(frozen=True)
class BinanceKline(CandleRecord):
    """A Binance kline: 12 fields, timestamps in milliseconds."""

    exchange: ClassVar[str] = "binance"
    timestamp_unit: ClassVar[TimestampUnit] = "ms"
    row_lengths: ClassVar[tuple[int, ...]] = (12,)

    open_time_ms: int
    open_price: float
    high_price: float
    low_price: float
    close_price: float
    volume: float
    close_time_ms: int
    quote_asset_volume: float
    number_of_trades: int
    taker_buy_base_volume: float
    taker_buy_quote_volume: float
    ignore: int

    @classmethod
    def _from_fields(cls, row: list[Any]) -> Self:
        return cls(
            open_time_ms=_as_int(row[0]),
            open_price=_as_float(row[1]),
            high_price=_as_float(row[2]),
            low_price=_as_float(row[3]),
            close_price=_as_float(row[4]),
            volume=_as_float(row[5]),
            close_time_ms=_as_int(row[6]),
            quote_asset_volume=_as_float(row[7]),
            number_of_trades=_as_int(row[8]),
            taker_buy_base_volume=_as_float(row[9]),
            taker_buy_quote_volume=_as_float(row[10]),
            ignore=_as_int(row[11]),
        )

    @classmethod
    def from_stored_row(cls, row: Any) -> Self:
        """Also accepts files whose open and close times are in us or ns."""
        if isinstance(row, list) and len(row) in cls.row_lengths:
            row = [_stored_ms(row[0]), *row[1:6], _stored_ms(row[6]), *row[7:]]
        return cls.from_row(row)

    def open_time(self) -> datetime:
        return from_epoch(self.open_time_ms, self.timestamp_unit)

    def close_time(self) -> datetime:
        return from_epoch(self.close_time_ms, self.timestamp_unit)

    def to_row(self) -> list[Any]:
        return list(astuple(self))


@dataclass(frozen=True)
class GateKline(CandleRecord):
    """A Gate.io candlestick: 7 or 8 fields, timestamps in seconds.

    Gate reports only the bucket start, so the open and close instants are
    the same. Older responses omit the trailing 'window closed' flag; it is
    kept as None and left out again on output.
    """

    exchange: ClassVar[str] = "gate"
    timestamp_unit: ClassVar[TimestampUnit] = "s"
    row_lengths: ClassVar[tuple[int, ...]] = (7, 8)

    time_s: int
    quote_volume: float
    close_price: float
    high_price: float
    low_price: float
    open_price: float
    base_volume: float
    window_closed: bool | None = None

    @classmethod
    def _from_fields(cls, row: list[Any]) -> Self:
        return cls(
            time_s=_as_int(row[0]),
            quote_volume=_as_float(row[1]),
            close_price=_as_float(row[2]),
            high_price=_as_float(row[3]),
            low_price=_as_float(row[4]),
            open_price=_as_float(row[5]),
            base_volume=_as_float(row[6]),
            window_closed=_as_bool(row[7]) if len(row) == 8 else None,
        )

    def open_time(self) -> datetime:
        return from_epoch(self.time_s, self.timestamp_unit)

    def close_time(self) -> datetime:
        return self.open_time()

    def to_row(self) -> list[Any]:
        row = list(astuple(self))
        if self.window_closed is None:
            row.pop()
        return row


# Every codec known to the package, used when sniffing persisted files.
RECORD_TYPES: tuple[type[CandleRecord], ...] = (BinanceKline, GateKline)


def decode_records(
    record_type: type[CandleRecord], body: bytes | str | list[Any]
) -> list[CandleRecord]:
    """Decodes a response body into records of the given type.

    Args:
        record_type: The record class of the exchange that produced the body.
        body: Raw JSON text/bytes, or an already parsed JSON value.

    Returns:
        The decoded records, in the order the exchange returned them.

    Raises:
        RecordDecodeError: If the body is not a JSON array of valid rows.
    """
    if isinstance(body, bytes | str):
        try:
            payload = json.loads(body)
        except ValueError as e:
            err_msg = f"[{record_type.exchange}] Response is not valid JSON: {e}"
            raise RecordDecodeError(err_msg) from e
    else:
        payload = body

    if not isinstance(payload, list):
        # Exchanges report API errors as JSON objects, e.g. {"code": -1121, ...}.
        err_msg = f"[{record_type.exchange}] Expected a JSON array, got {payload!r}"
        raise RecordDecodeError(err_msg)

    return [record_type.from_row(row) for row in payload]


def decode_stored_records(
    record_type: type[CandleRecord], rows: list[Any]
) -> list[CandleRecord]:
    """Decodes rows read back from a persisted file.

    Raises:
        RecordDecodeError: If a row does not match the layout.
    """
    return [record_type.from_stored_row(row) for row in rows]


def encode_records(records: list[CandleRecord]) -> list[list[Any]]:
    """Serializes records into an array of native wire rows."""
    return [record.to_row() for record in records]
