"""
Row encoder for parameterized inserts.

Values are bound left-to-right, exactly like `?` placeholders in an insert
statement: one typed append per column, in schema order, then a single
build(). The encoder is a small state machine:

    NEW --init()--> APPENDING --build()--> BUILT

Usage:
    from rowcodec.codec.encoder import RowEncoder

    encoder = RowEncoder(schema)
    encoder.init(5)            # total UTF-8 bytes of the string values
    encoder.append_int64(1001)
    encoder.append_string("world")
    row = encoder.build()      # immutable bytes, owned by the caller
"""

from __future__ import annotations

import enum
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, List, Optional, Sequence

from rowcodec.codec.layout import (
    FIXED_STRUCTS,
    FORMAT_VERSION,
    HEADER_LENGTH,
    HEADER_STRUCT,
    INT_RANGES,
    SCHEMA_VERSION,
    RowLayout,
    encode_date,
    offset_width,
    pack_offset,
)
from rowcodec.domain.schema import ColumnType, Schema
from rowcodec.errors import (
    IncompleteRowError,
    ProtocolOrderError,
    SchemaMismatchError,
    SizeError,
)
from rowcodec.utils.logging import get_logger

log = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class EncoderStage(enum.Enum):
    NEW = "new"
    APPENDING = "appending"
    BUILT = "built"


class RowEncoder:
    """
    Build one encoded row matching `schema`.

    Parameters
    ----------
    schema : Schema
        Resolved column list of the target table.
    size_hint : int, optional
        Total UTF-8 length of the row's string values. When given, `init()` is
        called immediately.
    format_version, schema_version : int
        Values written into the two version bytes of the row header.

    Not safe for concurrent use; an instance encodes exactly one row.
    """

    def __init__(
        self,
        schema: Schema,
        size_hint: Optional[int] = None,
        format_version: int = FORMAT_VERSION,
        schema_version: int = SCHEMA_VERSION,
    ) -> None:
        self._schema = schema
        self._layout = RowLayout.for_schema(schema)
        self._format_version = format_version
        self._schema_version = schema_version
        self._stage = EncoderStage.NEW
        self._buf = bytearray()
        self._index = 0
        self._size_hint = 0
        self._reserved_width = 0
        self._body_start = 0
        self._write_pos = 0
        self._string_lengths: List[int] = []
        if size_hint is not None:
            self.init(size_hint)

    # ------------------------------------------------------------------ state

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def stage(self) -> EncoderStage:
        return self._stage

    @property
    def append_index(self) -> int:
        """Index of the column the next append will write."""
        return self._index

    @property
    def size_hint(self) -> int:
        return self._size_hint

    @property
    def is_built(self) -> bool:
        return self._stage is EncoderStage.BUILT

    def __repr__(self) -> str:
        return (
            f"RowEncoder(stage={self._stage.value}, index={self._index}/"
            f"{self._layout.column_count}, schema=[{self._schema.describe()}])"
        )

    # ------------------------------------------------------------------- init

    def init(self, size_hint: int) -> None:
        """
        Allocate the row buffer.

        `size_hint` is the total UTF-8 length of the string values that will be
        appended. It only sizes the initial allocation: longer strings grow the
        buffer, shorter ones are compacted by build().
        """
        if self._stage is not EncoderStage.NEW:
            raise ProtocolOrderError("init() may only be called once, before any append")
        if isinstance(size_hint, bool) or not isinstance(size_hint, int):
            raise SizeError(f"Size hint must be an int, got {type(size_hint).__name__}")
        if size_hint < 0:
            raise SizeError(f"Size hint must be non-negative, got {size_hint}")
        layout = self._layout
        if size_hint and layout.string_count == 0:
            raise SizeError(
                f"Size hint {size_hint} given for a schema without string columns"
            )

        total = layout.total_length(size_hint)
        if layout.string_count:
            self._reserved_width = offset_width(layout.fixed_end, layout.string_count, size_hint)
        self._body_start = layout.fixed_end + layout.string_count * self._reserved_width
        self._buf = bytearray(total)
        self._write_pos = self._body_start
        self._size_hint = size_hint
        self._index = 0
        self._string_lengths = []
        self._stage = EncoderStage.APPENDING
        log.debug(
            "Row encoder initialised",
            extra={"size_hint": size_hint, "row_bytes": total, "columns": layout.column_count},
        )

    # ---------------------------------------------------------------- appends

    def _check_writable(self) -> int:
        if self._stage is EncoderStage.BUILT:
            raise ProtocolOrderError("Cannot append to a row that has already been built")
        if self._stage is EncoderStage.NEW:
            raise ProtocolOrderError("init() must be called before appending values")
        if self._index >= self._layout.column_count:
            raise ProtocolOrderError(
                f"All {self._layout.column_count} columns have already been appended"
            )
        return self._index

    def _begin(self, expected: ColumnType) -> int:
        idx = self._check_writable()
        actual = self._layout.types[idx]
        if actual is not expected:
            raise SchemaMismatchError(
                f"Column {idx} '{self._schema.column_name(idx)}' is {actual}, "
                f"cannot append {expected}"
            )
        return idx

    def _put_fixed(self, idx: int, col_type: ColumnType, value: Any) -> None:
        FIXED_STRUCTS[col_type].pack_into(self._buf, self._layout.offsets[idx], value)
        self._index += 1

    def _put_int(self, col_type: ColumnType, value: Any) -> None:
        idx = self._begin(col_type)
        if isinstance(value, bool) or not isinstance(value, int):
            raise SchemaMismatchError(
                f"{col_type} column '{self._schema.column_name(idx)}' expects int, "
                f"got {type(value).__name__}"
            )
        low, high = INT_RANGES[col_type]
        if not low <= value <= high:
            raise SchemaMismatchError(f"Value {value} is out of range for {col_type}")
        self._put_fixed(idx, col_type, value)

    def _put_real(self, idx: int, col_type: ColumnType, value: Any) -> None:
        try:
            self._put_fixed(idx, col_type, float(value))
        except OverflowError as exc:
            raise SchemaMismatchError(f"Value {value} is out of range for {col_type}") from exc

    def append_bool(self, value: bool) -> None:
        idx = self._begin(ColumnType.BOOL)
        if not isinstance(value, bool):
            raise SchemaMismatchError(f"kTypeBool expects bool, got {type(value).__name__}")
        self._put_fixed(idx, ColumnType.BOOL, value)

    def append_int16(self, value: int) -> None:
        self._put_int(ColumnType.INT16, value)

    def append_int32(self, value: int) -> None:
        self._put_int(ColumnType.INT32, value)

    def append_int64(self, value: int) -> None:
        self._put_int(ColumnType.INT64, value)

    def append_float(self, value: float) -> None:
        idx = self._begin(ColumnType.FLOAT)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise SchemaMismatchError(f"kTypeFloat expects float, got {type(value).__name__}")
        self._put_real(idx, ColumnType.FLOAT, value)

    def append_double(self, value: float) -> None:
        idx = self._begin(ColumnType.DOUBLE)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise SchemaMismatchError(f"kTypeDouble expects float, got {type(value).__name__}")
        self._put_real(idx, ColumnType.DOUBLE, value)

    def append_timestamp(self, value: int | datetime) -> None:
        """Append epoch milliseconds, or a datetime (naive values are taken as UTC)."""
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            value = (value - _EPOCH) // timedelta(milliseconds=1)
        self._put_int(ColumnType.TIMESTAMP, value)

    def append_date(self, value: date) -> None:
        idx = self._begin(ColumnType.DATE)
        if isinstance(value, datetime):
            value = value.date()
        if not isinstance(value, date):
            raise SchemaMismatchError(f"kTypeDate expects date, got {type(value).__name__}")
        self._put_fixed(idx, ColumnType.DATE, encode_date(value))

    def append_string(self, value: str) -> None:
        self._begin(ColumnType.STRING)
        if not isinstance(value, str):
            raise SchemaMismatchError(f"kTypeString expects str, got {type(value).__name__}")
        data = value.encode("utf-8")
        end = self._write_pos + len(data)
        if end > len(self._buf):
            log.debug(
                "String data exceeds size hint, growing row buffer",
                extra={"size_hint": self._size_hint, "needed": end - self._body_start},
            )
            self._buf.extend(bytes(end - len(self._buf)))
        self._buf[self._write_pos : end] = data
        self._write_pos = end
        self._string_lengths.append(len(data))
        self._index += 1

    def append_null(self) -> None:
        idx = self._check_writable()
        column = self._schema.column(idx)
        if not column.nullable:
            raise SchemaMismatchError(f"Column {idx} '{column.name}' is NOT NULL")
        self._buf[HEADER_LENGTH + (idx >> 3)] |= 1 << (idx & 7)
        if column.type.is_variable:
            self._string_lengths.append(0)
        self._index += 1

    def append(self, value: Any) -> None:
        """Append `value` with the typed append matching the current column."""
        idx = self._check_writable()
        if value is None:
            self.append_null()
            return
        getattr(self, _APPENDERS[self._layout.types[idx]])(value)

    def append_all(self, values: Iterable[Any]) -> None:
        for value in values:
            self.append(value)

    # ------------------------------------------------------------------ build

    def build(self) -> bytes:
        """
        Finalize the row and return its encoded bytes.

        The encoder is write-locked afterwards.
        """
        if self._stage is EncoderStage.BUILT:
            raise ProtocolOrderError("build() has already been called")
        if self._stage is EncoderStage.NEW:
            raise ProtocolOrderError("init() must be called before build()")
        layout = self._layout
        if self._index < layout.column_count:
            raise IncompleteRowError(
                f"Row has {self._index} of {layout.column_count} columns; "
                f"next expected column is '{self._schema.column_name(self._index)}'"
            )

        string_bytes = self._write_pos - self._body_start
        buf = self._buf
        if layout.string_count:
            width = offset_width(layout.fixed_end, layout.string_count, string_bytes)
            body = bytes(buf[self._body_start : self._write_pos])
            body_start = layout.fixed_end + layout.string_count * width
            if width != self._reserved_width:
                buf = buf[: layout.fixed_end] + bytearray(layout.string_count * width) + body
            else:
                del buf[self._write_pos :]
            pos = body_start
            for ordinal, length in enumerate(self._string_lengths):
                pack_offset(buf, layout.fixed_end + ordinal * width, width, pos)
                pos += length
        HEADER_STRUCT.pack_into(buf, 0, self._format_version, self._schema_version, len(buf))

        row = bytes(buf)
        self._buf = bytearray()
        self._stage = EncoderStage.BUILT
        log.debug(
            "Row built",
            extra={"row_bytes": len(row), "size_hint": self._size_hint, "string_bytes": string_bytes},
        )
        return row


_APPENDERS = {
    ColumnType.BOOL: "append_bool",
    ColumnType.INT16: "append_int16",
    ColumnType.INT32: "append_int32",
    ColumnType.INT64: "append_int64",
    ColumnType.FLOAT: "append_float",
    ColumnType.DOUBLE: "append_double",
    ColumnType.TIMESTAMP: "append_timestamp",
    ColumnType.DATE: "append_date",
    ColumnType.STRING: "append_string",
}


def string_size_hint(schema: Schema, values: Sequence[Any]) -> int:
    """Total UTF-8 length of the string values bound to string columns."""
    total = 0
    for col_type, value in zip(schema.types(), values):
        if col_type.is_variable and isinstance(value, str):
            total += len(value.encode("utf-8"))
    return total


def encode_row(schema: Schema, values: Sequence[Any]) -> bytes:
    """Encode one full row in a single call."""
    encoder = RowEncoder(schema, size_hint=string_size_hint(schema, values))
    encoder.append_all(values)
    return encoder.build()


def encode_rows(schema: Schema, rows: Iterable[Sequence[Any]]) -> bytes:
    """Encode several rows into a result payload (rows back to back)."""
    return b"".join(encode_row(schema, values) for values in rows)


__all__ = [
    "EncoderStage",
    "RowEncoder",
    "encode_row",
    "encode_rows",
    "string_size_hint",
]
