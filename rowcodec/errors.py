"""
Exception types for the row codec.

Every error raised by the encoder or the result cursor derives from
`RowCodecError`, so callers can handle codec failures without catching
unrelated exceptions. Each concrete type also inherits the closest builtin
(ValueError, TypeError, ...) to keep `except ValueError` call sites working.

The `*_unsafe` cursor accessors are the one part of the codec that does not
raise these: their precondition violations are the caller's responsibility.
"""

from __future__ import annotations


class RowCodecError(Exception):
    """Base class for all row codec errors."""


class SizeError(RowCodecError, ValueError):
    """
    Raised when a size hint is inconsistent with the schema.

    Examples:
      - negative string length hint
      - non-zero string hint for a schema without string columns
      - a row that would exceed the 32-bit row size field
    """


class SchemaMismatchError(RowCodecError, TypeError):
    """
    Raised when a value does not fit the declared column type.

    Examples:
      - append_string() while the current column is kTypeInt64
      - an int that overflows a kTypeInt16 column
      - append_null() on a NOT NULL column
    """


class TypeMismatchError(SchemaMismatchError):
    """Raised by checked cursor accessors reading a column of another type."""


class ProtocolOrderError(RowCodecError, RuntimeError):
    """
    Raised when encoder stages are used out of order.

    Examples:
      - append after build()
      - append before init()
      - more appends than the schema has columns
    """


class IncompleteRowError(RowCodecError, RuntimeError):
    """Raised when build() is called before every column has been appended."""


class OutOfRangeError(RowCodecError, IndexError):
    """Raised by checked accessors when the cursor is not on a row or the column index is invalid."""


class RowFormatError(RowCodecError, ValueError):
    """Raised when a result payload cannot be split into well-formed rows."""


__all__ = [
    "RowCodecError",
    "SizeError",
    "SchemaMismatchError",
    "TypeMismatchError",
    "ProtocolOrderError",
    "IncompleteRowError",
    "OutOfRangeError",
    "RowFormatError",
]
