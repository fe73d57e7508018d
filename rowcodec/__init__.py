"""
rowcodec - binary row protocol of the SQL router client.

This package provides the client side of the router's row format:

- RowEncoder: builds an insert row value by value, in schema order
- ResultCursor: forward-only typed access to a result payload
- Schema / ColumnType: the column description both sides share
- JobRecord: task manager job metadata, with a PostgreSQL-backed store

Query planning, execution and the network transport live in the SQL engine;
this package only produces and consumes the bytes.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from rowcodec.codec import (
    Cell,
    CursorState,
    EncoderStage,
    ResultCursor,
    RowEncoder,
    decode_rows,
    encode_row,
    encode_rows,
)
from rowcodec.config import Settings, get_settings
from rowcodec.domain import (
    ColumnDef,
    ColumnType,
    JobRecord,
    JobState,
    JobStateError,
    JobType,
    Schema,
)
from rowcodec.errors import (
    IncompleteRowError,
    OutOfRangeError,
    ProtocolOrderError,
    RowCodecError,
    RowFormatError,
    SchemaMismatchError,
    SizeError,
    TypeMismatchError,
)
from rowcodec.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Schema
    "ColumnDef",
    "ColumnType",
    "Schema",
    # Codec
    "Cell",
    "CursorState",
    "EncoderStage",
    "ResultCursor",
    "RowEncoder",
    "decode_rows",
    "encode_row",
    "encode_rows",
    # Errors
    "RowCodecError",
    "SizeError",
    "SchemaMismatchError",
    "TypeMismatchError",
    "ProtocolOrderError",
    "IncompleteRowError",
    "OutOfRangeError",
    "RowFormatError",
    # Jobs
    "JobRecord",
    "JobState",
    "JobStateError",
    "JobType",
    # Logging
    "configure_logging",
    "get_logger",
]
