"""
Schema models shared by the row encoder and the result cursor.

A Schema is the ordered column list of a table or a result set, as resolved by
the catalog. Column order defines both the encoding and the decoding order, so
the models are frozen once built.
"""
from __future__ import annotations

import enum
from typing import Iterable, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


class ColumnType(str, enum.Enum):
    """Scalar column kinds understood by the row codec."""

    BOOL = "kTypeBool"
    INT16 = "kTypeInt16"
    INT32 = "kTypeInt32"
    INT64 = "kTypeInt64"
    FLOAT = "kTypeFloat"
    DOUBLE = "kTypeDouble"
    TIMESTAMP = "kTypeTimestamp"
    DATE = "kTypeDate"
    STRING = "kTypeString"

    def __str__(self) -> str:
        return self.value

    @property
    def fixed_size(self) -> Optional[int]:
        """Encoded width in bytes, or None for variable-length types."""
        return _FIXED_SIZES.get(self)

    @property
    def is_variable(self) -> bool:
        return self is ColumnType.STRING

    @classmethod
    def from_name(cls, name: str) -> "ColumnType":
        """
        Resolve a SQL type name or a `kType*` name to a ColumnType.

        Raises ValueError for unknown names.
        """
        key = name.strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        try:
            return _ALIASES[key]
        except KeyError:
            raise ValueError(f"Unsupported column type: {name!r}") from None


_FIXED_SIZES = {
    ColumnType.BOOL: 1,
    ColumnType.INT16: 2,
    ColumnType.INT32: 4,
    ColumnType.INT64: 8,
    ColumnType.FLOAT: 4,
    ColumnType.DOUBLE: 8,
    ColumnType.TIMESTAMP: 8,
    ColumnType.DATE: 4,
}

_ALIASES = {
    "bool": ColumnType.BOOL,
    "boolean": ColumnType.BOOL,
    "smallint": ColumnType.INT16,
    "int16": ColumnType.INT16,
    "int": ColumnType.INT32,
    "integer": ColumnType.INT32,
    "int32": ColumnType.INT32,
    "bigint": ColumnType.INT64,
    "int64": ColumnType.INT64,
    "float": ColumnType.FLOAT,
    "double": ColumnType.DOUBLE,
    "timestamp": ColumnType.TIMESTAMP,
    "date": ColumnType.DATE,
    "string": ColumnType.STRING,
    "varchar": ColumnType.STRING,
}


class ColumnDef(BaseModel):
    """
    A single column of a table or result set.
    """

    name: str = Field(..., min_length=1, description="Column name.")
    type: ColumnType = Field(..., description="Declared scalar type.")
    nullable: bool = Field(True, description="Whether NULL may be stored.")

    model_config = {
        "frozen": True,
    }

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value):
        if isinstance(value, str) and not isinstance(value, ColumnType):
            return ColumnType.from_name(value)
        return value


class Schema(BaseModel):
    """
    Ordered, immutable column description.
    """

    columns: Tuple[ColumnDef, ...] = Field(..., min_length=1)

    model_config = {
        "frozen": True,
    }

    @field_validator("columns")
    @classmethod
    def _unique_names(cls, columns: Tuple[ColumnDef, ...]) -> Tuple[ColumnDef, ...]:
        seen = set()
        for column in columns:
            if column.name in seen:
                raise ValueError(f"Duplicate column name '{column.name}'")
            seen.add(column.name)
        return columns

    @classmethod
    def of(cls, *columns: Tuple[str, ColumnType] | Tuple[str, ColumnType, bool]) -> "Schema":
        """Build a schema from `(name, type)` or `(name, type, nullable)` tuples."""
        defs = []
        for column in columns:
            if len(column) == 3:
                name, col_type, nullable = column  # type: ignore[misc]
            else:
                name, col_type = column  # type: ignore[misc]
                nullable = True
            defs.append(ColumnDef(name=name, type=col_type, nullable=nullable))
        return cls(columns=tuple(defs))

    @classmethod
    def parse(cls, text: str) -> "Schema":
        """
        Parse a compact `name:type[,name:type...]` description.

        A trailing `!` on the type marks the column NOT NULL, e.g.
        ``"col1:bigint!, col2:string"``.
        """
        defs = []
        for part in text.split(","):
            part = part.strip()
            if not part:
                continue
            name, sep, type_name = part.partition(":")
            if not sep:
                raise ValueError(f"Expected 'name:type', got {part!r}")
            type_name = type_name.strip()
            nullable = not type_name.endswith("!")
            defs.append(
                ColumnDef(
                    name=name.strip(),
                    type=ColumnType.from_name(type_name.rstrip("!")),
                    nullable=nullable,
                )
            )
        return cls(columns=tuple(defs))

    def __len__(self) -> int:
        return len(self.columns)

    def column_count(self) -> int:
        return len(self.columns)

    def column(self, index: int) -> ColumnDef:
        return self.columns[index]

    def column_type(self, index: int) -> ColumnType:
        return self.columns[index].type

    def column_name(self, index: int) -> str:
        return self.columns[index].name

    def index_of(self, name: str) -> int:
        for idx, column in enumerate(self.columns):
            if column.name == name:
                return idx
        raise KeyError(f"Unknown column '{name}'")

    def names(self) -> Tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    def types(self) -> Tuple[ColumnType, ...]:
        return tuple(column.type for column in self.columns)

    def string_column_count(self) -> int:
        return sum(1 for column in self.columns if column.type.is_variable)

    def describe(self) -> str:
        """Render the schema back into the compact `parse()` form."""
        return ", ".join(
            f"{c.name}:{c.type.value}{'' if c.nullable else '!'}" for c in self.columns
        )


def schema_from_pairs(pairs: Iterable[Tuple[str, str]]) -> Schema:
    """Build a schema from `(name, sql_type_name)` pairs, as returned by a catalog."""
    return Schema(
        columns=tuple(ColumnDef(name=name, type=ColumnType.from_name(t)) for name, t in pairs)
    )


__all__ = ["ColumnType", "ColumnDef", "Schema", "schema_from_pairs"]
