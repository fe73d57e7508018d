"""
Binary row protocol: the insert-row encoder and the result-set cursor.

Both sides share the layout in `rowcodec.codec.layout`; the encoder produces
rows that the cursor decodes field for field.
"""

from rowcodec.codec.cursor import Cell, CursorState, ResultCursor, decode_rows
from rowcodec.codec.encoder import EncoderStage, RowEncoder, encode_row, encode_rows

__all__ = [
    "Cell",
    "CursorState",
    "ResultCursor",
    "decode_rows",
    "EncoderStage",
    "RowEncoder",
    "encode_row",
    "encode_rows",
]
