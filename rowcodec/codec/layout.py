"""
Row wire format shared by the encoder and the result cursor.

Layout of one encoded row (all integers little-endian):

    [0]        u8   format version
    [1]        u8   schema version
    [2:6]      u32  total row size, header included
    [6:6+B]         null bitmap, B = ceil(columns / 8)
    [...]           fixed-width fields of the non-string columns, schema order
    [...]           string offset table, one W-byte entry per string column
    [...]           UTF-8 string bodies, contiguous, schema order

W (1..4 bytes) depends on the total row size, see `offset_width()`. Each
offset entry is the absolute position of the string body; a string's length
is the next entry (or the row size, for the last string) minus its own.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional, Tuple

from rowcodec.domain.schema import ColumnType, Schema
from rowcodec.errors import SizeError

FORMAT_VERSION = 1
SCHEMA_VERSION = 1

VERSION_LENGTH = 2
SIZE_LENGTH = 4
HEADER_LENGTH = VERSION_LENGTH + SIZE_LENGTH

UINT8_MAX = 0xFF
UINT16_MAX = 0xFFFF
UINT24_MAX = 1 << 24
UINT32_MAX = 0xFFFFFFFF

HEADER_STRUCT = struct.Struct("<BBI")
SIZE_STRUCT = struct.Struct("<I")

# struct codes for the fixed-width types
FIXED_STRUCTS: Dict[ColumnType, struct.Struct] = {
    ColumnType.BOOL: struct.Struct("<?"),
    ColumnType.INT16: struct.Struct("<h"),
    ColumnType.INT32: struct.Struct("<i"),
    ColumnType.INT64: struct.Struct("<q"),
    ColumnType.FLOAT: struct.Struct("<f"),
    ColumnType.DOUBLE: struct.Struct("<d"),
    ColumnType.TIMESTAMP: struct.Struct("<q"),
    ColumnType.DATE: struct.Struct("<i"),
}

INT_RANGES: Dict[ColumnType, Tuple[int, int]] = {
    ColumnType.INT16: (-(1 << 15), (1 << 15) - 1),
    ColumnType.INT32: (-(1 << 31), (1 << 31) - 1),
    ColumnType.INT64: (-(1 << 63), (1 << 63) - 1),
    ColumnType.TIMESTAMP: (-(1 << 63), (1 << 63) - 1),
}


def bitmap_size(column_count: int) -> int:
    return (column_count + 7) >> 3


def start_offset(column_count: int) -> int:
    """Offset of the first fixed-width field."""
    return HEADER_LENGTH + bitmap_size(column_count)


def offset_width(fixed_end: int, string_count: int, string_bytes: int) -> int:
    """
    Pick the width of the string offset table entries for a row.

    Raises SizeError when the row cannot be addressed with 32-bit offsets.
    """
    total = fixed_end + string_bytes
    if total + string_count <= UINT8_MAX:
        return 1
    if total + string_count * 2 <= UINT16_MAX:
        return 2
    if total + string_count * 3 <= UINT24_MAX:
        return 3
    if total + string_count * 4 <= UINT32_MAX:
        return 4
    raise SizeError(f"Row of {total} bytes exceeds the maximum encodable row size")


def total_length(fixed_end: int, string_count: int, string_bytes: int) -> int:
    """Total encoded size of a row carrying `string_bytes` bytes of string data."""
    if string_count == 0:
        return fixed_end
    width = offset_width(fixed_end, string_count, string_bytes)
    return fixed_end + string_bytes + string_count * width


def offset_width_for_size(row_size: int) -> int:
    """Offset entry width as recovered by a decoder from the row size field."""
    if row_size <= UINT8_MAX:
        return 1
    if row_size <= UINT16_MAX:
        return 2
    if row_size <= UINT24_MAX:
        return 3
    return 4


def pack_offset(buf: bytearray, pos: int, width: int, value: int) -> None:
    buf[pos : pos + width] = value.to_bytes(width, "little")


def unpack_offset(buf, pos: int, width: int) -> int:
    return int.from_bytes(buf[pos : pos + width], "little")


def encode_date(value: date) -> int:
    return ((value.year - 1900) << 16) | ((value.month - 1) << 8) | value.day


def decode_date(packed: int) -> date:
    return date((packed >> 16) + 1900, ((packed >> 8) & 0xFF) + 1, packed & 0xFF)


@dataclass(frozen=True)
class RowLayout:
    """
    Precomputed offsets for one schema.

    Attributes
    ----------
    column_count : int
        Number of columns in the schema.
    offsets : tuple
        For fixed-width columns, the absolute field offset. For string columns,
        the ordinal of the column among the string columns.
    fixed_end : int
        First byte after the fixed-width area; the offset table starts here.
    string_count : int
        Number of string columns.
    """

    column_count: int
    types: Tuple[ColumnType, ...]
    offsets: Tuple[int, ...]
    fixed_end: int
    string_count: int

    @classmethod
    def for_schema(cls, schema: Schema) -> "RowLayout":
        types = schema.types()
        cursor = start_offset(len(types))
        string_ordinal = 0
        offsets = []
        for col_type in types:
            if col_type.is_variable:
                offsets.append(string_ordinal)
                string_ordinal += 1
            else:
                offsets.append(cursor)
                cursor += col_type.fixed_size  # type: ignore[operator]
        return cls(
            column_count=len(types),
            types=types,
            offsets=tuple(offsets),
            fixed_end=cursor,
            string_count=string_ordinal,
        )

    def total_length(self, string_bytes: int) -> int:
        return total_length(self.fixed_end, self.string_count, string_bytes)

    def string_ordinal(self, index: int) -> Optional[int]:
        if self.types[index].is_variable:
            return self.offsets[index]
        return None


__all__ = [
    "FORMAT_VERSION",
    "SCHEMA_VERSION",
    "HEADER_LENGTH",
    "HEADER_STRUCT",
    "SIZE_STRUCT",
    "FIXED_STRUCTS",
    "INT_RANGES",
    "RowLayout",
    "bitmap_size",
    "start_offset",
    "offset_width",
    "offset_width_for_size",
    "total_length",
    "pack_offset",
    "unpack_offset",
    "encode_date",
    "decode_date",
]
