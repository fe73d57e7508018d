from __future__ import annotations

import pytest
from pydantic import ValidationError

from rowcodec.domain.schema import ColumnDef, ColumnType, Schema, schema_from_pairs


def test_column_type_string_form_matches_router_names():
    assert str(ColumnType.INT64) == "kTypeInt64"
    assert str(ColumnType.STRING) == "kTypeString"


@pytest.mark.parametrize(
    "name, expected",
    [
        ("bigint", ColumnType.INT64),
        ("BIGINT", ColumnType.INT64),
        ("string", ColumnType.STRING),
        ("varchar", ColumnType.STRING),
        ("smallint", ColumnType.INT16),
        ("int", ColumnType.INT32),
        ("kTypeDouble", ColumnType.DOUBLE),
        (" timestamp ", ColumnType.TIMESTAMP),
    ],
)
def test_column_type_from_name(name, expected):
    assert ColumnType.from_name(name) is expected


def test_column_type_from_name_rejects_unknown():
    with pytest.raises(ValueError):
        ColumnType.from_name("decimal")


def test_fixed_sizes():
    assert ColumnType.BOOL.fixed_size == 1
    assert ColumnType.INT16.fixed_size == 2
    assert ColumnType.DATE.fixed_size == 4
    assert ColumnType.TIMESTAMP.fixed_size == 8
    assert ColumnType.STRING.fixed_size is None
    assert ColumnType.STRING.is_variable


def test_schema_queries(smoke_schema):
    assert smoke_schema.column_count() == 2
    assert len(smoke_schema) == 2
    assert smoke_schema.column_type(0) is ColumnType.INT64
    assert smoke_schema.column_type(1) is ColumnType.STRING
    assert smoke_schema.column_name(1) == "col2"
    assert smoke_schema.index_of("col2") == 1
    assert smoke_schema.string_column_count() == 1
    with pytest.raises(KeyError):
        smoke_schema.index_of("missing")


def test_schema_parse_marks_not_null():
    schema = Schema.parse("id:bigint!, name:string")
    assert schema.column(0).nullable is False
    assert schema.column(1).nullable is True
    assert schema.describe() == "id:kTypeInt64!, name:kTypeString"
    assert Schema.parse(schema.describe()) == schema


def test_schema_parse_rejects_malformed_part():
    with pytest.raises(ValueError):
        Schema.parse("col1 bigint")


def test_schema_rejects_duplicate_names():
    with pytest.raises(ValidationError):
        Schema.of(("a", ColumnType.INT32), ("a", ColumnType.STRING))


def test_schema_rejects_empty_column_list():
    with pytest.raises(ValidationError):
        Schema(columns=())


def test_schema_is_frozen(smoke_schema):
    with pytest.raises(ValidationError):
        smoke_schema.columns = ()


def test_column_def_accepts_type_names():
    column = ColumnDef(name="c", type="bigint")
    assert column.type is ColumnType.INT64


def test_schema_from_catalog_pairs():
    schema = schema_from_pairs([("col1", "bigint"), ("col2", "string")])
    assert schema.types() == (ColumnType.INT64, ColumnType.STRING)
