"""
Forward-only cursor over an encoded result payload.

A payload is the concatenation of rows in the format described in
`rowcodec.codec.layout`. The cursor splits it into rows once, checking each
header's version bytes and size, then moves
through them with `next()`:

    BEFORE_FIRST --next()--> ON_ROW(0) --next()--> ... --next()--> EXHAUSTED

Two accessor families are offered:

- `get_<type>(col)` checks that the cursor is on a row, that `col` exists and
  that its declared type matches, and returns None for NULL cells. String
  offsets outside the row, invalid UTF-8 and impossible dates raise
  RowFormatError. `get()` and iteration read through this family.
- `get_<type>_unsafe(col)` skips every check. Calling one before the first
  `next()`, after exhaustion, or on a column of another type returns garbage
  or raises whatever the underlying read raises. It is a fast path for callers
  that already know the schema.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Iterator, List, Optional, Tuple

from rowcodec.codec.layout import (
    FIXED_STRUCTS,
    FORMAT_VERSION,
    HEADER_LENGTH,
    HEADER_STRUCT,
    SCHEMA_VERSION,
    RowLayout,
    decode_date,
    offset_width_for_size,
    unpack_offset,
)
from rowcodec.domain.schema import ColumnType, Schema
from rowcodec.errors import OutOfRangeError, RowFormatError, TypeMismatchError
from rowcodec.utils.logging import get_logger

log = get_logger(__name__)

_BOOL = FIXED_STRUCTS[ColumnType.BOOL]
_INT16 = FIXED_STRUCTS[ColumnType.INT16]
_INT32 = FIXED_STRUCTS[ColumnType.INT32]
_INT64 = FIXED_STRUCTS[ColumnType.INT64]
_FLOAT = FIXED_STRUCTS[ColumnType.FLOAT]
_DOUBLE = FIXED_STRUCTS[ColumnType.DOUBLE]


class CursorState(enum.Enum):
    BEFORE_FIRST = "before_first"
    ON_ROW = "on_row"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class Cell:
    """
    A decoded value tagged with its column type.

    `value` is None for NULL cells.
    """

    type: ColumnType
    value: Any

    @property
    def is_null(self) -> bool:
        return self.value is None

    def expect(self, col_type: ColumnType) -> Any:
        """Return the value if the cell has type `col_type`, else raise TypeMismatchError."""
        if self.type is not col_type:
            raise TypeMismatchError(f"Cell is {self.type}, not {col_type}")
        return self.value


def split_rows(
    payload: memoryview,
    min_row_size: int,
    format_version: int = FORMAT_VERSION,
    schema_version: Optional[int] = SCHEMA_VERSION,
) -> List[Tuple[int, int]]:
    """
    Return `(start, size)` for every row in the payload.

    Every row header must carry `format_version`. The schema version byte is
    checked against `schema_version` unless that is None.
    """
    rows: List[Tuple[int, int]] = []
    pos = 0
    total = len(payload)
    while pos < total:
        if total - pos < HEADER_LENGTH:
            raise RowFormatError(
                f"Truncated row header at byte {pos}: {total - pos} bytes left"
            )
        fversion, sversion, size = HEADER_STRUCT.unpack_from(payload, pos)
        if fversion != format_version:
            raise RowFormatError(
                f"Row at byte {pos} has format version {fversion}, expected {format_version}"
            )
        if schema_version is not None and sversion != schema_version:
            raise RowFormatError(
                f"Row at byte {pos} has schema version {sversion}, expected {schema_version}"
            )
        if size < min_row_size:
            raise RowFormatError(
                f"Row at byte {pos} declares {size} bytes, schema needs at least {min_row_size}"
            )
        if pos + size > total:
            raise RowFormatError(
                f"Row at byte {pos} declares {size} bytes but only {total - pos} remain"
            )
        rows.append((pos, size))
        pos += size
    return rows


class ResultCursor:
    """
    Typed, forward-only access to the rows of a result payload.

    Parameters
    ----------
    schema : Schema
        Column description the payload was encoded with.
    payload : bytes-like
        Rows back to back. Borrowed read-only for the lifetime of the cursor.
    row_count : int, optional
        Expected number of rows; a mismatch raises RowFormatError.
    format_version : int
        Format version every row header must carry.
    schema_version : int, optional
        Schema version every row header must carry; None accepts any.
    """

    def __init__(
        self,
        schema: Schema,
        payload: Any,
        row_count: Optional[int] = None,
        format_version: int = FORMAT_VERSION,
        schema_version: Optional[int] = SCHEMA_VERSION,
    ) -> None:
        self._schema = schema
        self._layout = RowLayout.for_schema(schema)
        self._types = self._layout.types
        self._offsets = self._layout.offsets
        self._view = memoryview(payload).toreadonly()
        self._rows = split_rows(
            self._view,
            self._layout.fixed_end,
            format_version=format_version,
            schema_version=schema_version,
        )
        if row_count is not None and row_count != len(self._rows):
            raise RowFormatError(
                f"Payload holds {len(self._rows)} rows, expected {row_count}"
            )
        self._position = -1
        self._row_start = 0
        self._row_size = 0
        self._width = 1
        log.debug(
            "Result cursor opened",
            extra={"rows": len(self._rows), "payload_bytes": len(self._view)},
        )

    @classmethod
    def from_rows(cls, schema: Schema, rows: Iterable[bytes]) -> "ResultCursor":
        """Build a cursor over individually encoded rows."""
        rows = list(rows)
        return cls(schema, b"".join(rows), row_count=len(rows))

    # ------------------------------------------------------------ navigation

    def size(self) -> int:
        return len(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def schema(self) -> Schema:
        return self._schema

    @property
    def position(self) -> int:
        """-1 before the first row, the row index on a row, size() once exhausted."""
        return self._position

    @property
    def state(self) -> CursorState:
        if self._position < 0:
            return CursorState.BEFORE_FIRST
        if self._position >= len(self._rows):
            return CursorState.EXHAUSTED
        return CursorState.ON_ROW

    def next(self) -> bool:
        """Advance to the next row. Returns False, and keeps returning False, once exhausted."""
        if self._position >= len(self._rows):
            return False
        self._position += 1
        if self._position >= len(self._rows):
            self._row_start = 0
            self._row_size = 0
            return False
        self._row_start, self._row_size = self._rows[self._position]
        self._width = offset_width_for_size(self._row_size)
        return True

    def __iter__(self) -> Iterator[Tuple[Any, ...]]:
        while self.next():
            yield self.row_values()

    # ------------------------------------------------------ unchecked access

    def is_null_unsafe(self, col: int) -> bool:
        return bool(self._view[self._row_start + HEADER_LENGTH + (col >> 3)] & (1 << (col & 7)))

    def get_bool_unsafe(self, col: int) -> bool:
        return _BOOL.unpack_from(self._view, self._row_start + self._offsets[col])[0]

    def get_int16_unsafe(self, col: int) -> int:
        return _INT16.unpack_from(self._view, self._row_start + self._offsets[col])[0]

    def get_int32_unsafe(self, col: int) -> int:
        return _INT32.unpack_from(self._view, self._row_start + self._offsets[col])[0]

    def get_int64_unsafe(self, col: int) -> int:
        return _INT64.unpack_from(self._view, self._row_start + self._offsets[col])[0]

    def get_float_unsafe(self, col: int) -> float:
        return _FLOAT.unpack_from(self._view, self._row_start + self._offsets[col])[0]

    def get_double_unsafe(self, col: int) -> float:
        return _DOUBLE.unpack_from(self._view, self._row_start + self._offsets[col])[0]

    def get_timestamp_unsafe(self, col: int) -> int:
        """Epoch milliseconds."""
        return _INT64.unpack_from(self._view, self._row_start + self._offsets[col])[0]

    def get_date_unsafe(self, col: int) -> date:
        packed = _INT32.unpack_from(self._view, self._row_start + self._offsets[col])[0]
        return decode_date(packed)

    def get_string_unsafe(self, col: int) -> str:
        start, end = self._string_bounds(col)
        return bytes(self._view[self._row_start + start : self._row_start + end]).decode("utf-8")

    def _string_bounds(self, col: int) -> Tuple[int, int]:
        ordinal = self._offsets[col]
        width = self._width
        entry = self._row_start + self._layout.fixed_end + ordinal * width
        start = unpack_offset(self._view, entry, width)
        if ordinal + 1 < self._layout.string_count:
            end = unpack_offset(self._view, entry + width, width)
        else:
            end = self._row_size
        return start, end

    # -------------------------------------------------------- checked access

    def _check_position(self, col: int) -> None:
        if self.state is not CursorState.ON_ROW:
            raise OutOfRangeError(f"Cursor is not positioned on a row ({self.state.value})")
        if isinstance(col, bool) or not isinstance(col, int) or not 0 <= col < len(self._types):
            raise OutOfRangeError(
                f"Column index {col!r} out of range for {len(self._types)} columns"
            )

    def _check(self, col: int, expected: ColumnType) -> bool:
        """Validate access; returns True when the cell is NULL."""
        self._check_position(col)
        actual = self._types[col]
        if actual is not expected:
            raise TypeMismatchError(
                f"Column {col} '{self._schema.column_name(col)}' is {actual}, not {expected}"
            )
        return self.is_null_unsafe(col)

    def is_null(self, col: int) -> bool:
        self._check_position(col)
        return self.is_null_unsafe(col)

    def get_bool(self, col: int) -> Optional[bool]:
        return None if self._check(col, ColumnType.BOOL) else self.get_bool_unsafe(col)

    def get_int16(self, col: int) -> Optional[int]:
        return None if self._check(col, ColumnType.INT16) else self.get_int16_unsafe(col)

    def get_int32(self, col: int) -> Optional[int]:
        return None if self._check(col, ColumnType.INT32) else self.get_int32_unsafe(col)

    def get_int64(self, col: int) -> Optional[int]:
        return None if self._check(col, ColumnType.INT64) else self.get_int64_unsafe(col)

    def get_float(self, col: int) -> Optional[float]:
        return None if self._check(col, ColumnType.FLOAT) else self.get_float_unsafe(col)

    def get_double(self, col: int) -> Optional[float]:
        return None if self._check(col, ColumnType.DOUBLE) else self.get_double_unsafe(col)

    def get_timestamp(self, col: int) -> Optional[int]:
        return None if self._check(col, ColumnType.TIMESTAMP) else self.get_timestamp_unsafe(col)

    def get_date(self, col: int) -> Optional[date]:
        return None if self._check(col, ColumnType.DATE) else self._read_date(col)

    def get_string(self, col: int) -> Optional[str]:
        return None if self._check(col, ColumnType.STRING) else self._read_string(col)

    def _read_date(self, col: int) -> date:
        try:
            return self.get_date_unsafe(col)
        except ValueError as exc:
            raise RowFormatError(f"Date column {col} holds an invalid date: {exc}") from exc

    def _read_string(self, col: int) -> str:
        start, end = self._string_bounds(col)
        if not self._layout.fixed_end <= start <= end <= self._row_size:
            raise RowFormatError(
                f"String column {col} spans [{start}, {end}) outside row of {self._row_size} bytes"
            )
        try:
            return self.get_string_unsafe(col)
        except UnicodeDecodeError as exc:
            raise RowFormatError(f"String column {col} is not valid UTF-8: {exc}") from exc

    def get(self, col: int) -> Cell:
        """Decode column `col` of the current row as a tagged Cell."""
        self._check_position(col)
        col_type = self._types[col]
        if self.is_null_unsafe(col):
            return Cell(col_type, None)
        return Cell(col_type, getattr(self, _CHECKED_READERS[col_type])(col))

    def row_values(self) -> Tuple[Any, ...]:
        """All values of the current row, None for NULL cells."""
        return tuple(self.get(col).value for col in range(len(self._types)))


_READERS = {
    ColumnType.BOOL: "get_bool_unsafe",
    ColumnType.INT16: "get_int16_unsafe",
    ColumnType.INT32: "get_int32_unsafe",
    ColumnType.INT64: "get_int64_unsafe",
    ColumnType.FLOAT: "get_float_unsafe",
    ColumnType.DOUBLE: "get_double_unsafe",
    ColumnType.TIMESTAMP: "get_timestamp_unsafe",
    ColumnType.DATE: "get_date_unsafe",
    ColumnType.STRING: "get_string_unsafe",
}

# fixed-width reads cannot fail once the row size is validated; dates and strings can
_CHECKED_READERS = {
    **_READERS,
    ColumnType.DATE: "_read_date",
    ColumnType.STRING: "_read_string",
}


def decode_rows(schema: Schema, payload: Any) -> List[Tuple[Any, ...]]:
    """Decode every row of a payload into value tuples."""
    return list(ResultCursor(schema, payload))


__all__ = [
    "Cell",
    "CursorState",
    "ResultCursor",
    "decode_rows",
    "split_rows",
]
