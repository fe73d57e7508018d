from __future__ import annotations

import csv
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Optional

import psycopg
import typer

from rowcodec.bench import run_benchmark
from rowcodec.codec.cursor import ResultCursor
from rowcodec.codec.encoder import RowEncoder, encode_row
from rowcodec.config import get_settings
from rowcodec.domain.schema import ColumnType, Schema
from rowcodec.errors import RowCodecError
from rowcodec.infrastructure.db_factory import PoolManager
from rowcodec.infrastructure.job_store import JobStore
from rowcodec.reporter import print_bench_results, print_jobs, print_rows
from rowcodec.utils.logging import configure_logging, get_logger

app = typer.Typer(help="Row codec tools for the SQL router client.")
log = get_logger(__name__)

NULL_TOKEN = "NULL"
SMOKE_SCHEMA = "col1:bigint, col2:string"


@app.callback()
def _setup(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    settings = get_settings()
    configure_logging(level="DEBUG" if verbose else settings.log_level, json_logs=settings.log_json)


def parse_cell(col_type: ColumnType, text: str) -> Any:
    """
    Convert command line text into a value for a column of `col_type`.

    The literal NULL maps to None.
    """
    if text == NULL_TOKEN:
        return None
    if col_type is ColumnType.STRING:
        return text
    if col_type is ColumnType.BOOL:
        lowered = text.strip().lower()
        if lowered in ("true", "t", "1", "yes"):
            return True
        if lowered in ("false", "f", "0", "no"):
            return False
        raise ValueError(f"Not a boolean: {text!r}")
    if col_type in (ColumnType.FLOAT, ColumnType.DOUBLE):
        return float(text)
    if col_type is ColumnType.DATE:
        return date.fromisoformat(text.strip())
    if col_type is ColumnType.TIMESTAMP:
        stripped = text.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
        return datetime.fromisoformat(stripped)
    return int(text)


def _parse_schema(text: str) -> Schema:
    try:
        return Schema.parse(text)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--schema") from exc


def _fail(exc: Exception) -> None:
    typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"env={settings.app_env} log_level={settings.log_level} json={settings.log_json} | "
        f"jobs={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name}"
        f".{settings.job_table} | bench rows={settings.benchmark_rows} seed={settings.benchmark_seed}"
    )


@app.command()
def smoke() -> None:
    """
    Encode the two router smoke-test rows and read them back through a cursor.
    """
    schema = _parse_schema(SMOKE_SCHEMA)
    try:
        first = encode_row(schema, (1000, "hello"))
        encoder = RowEncoder(schema)
        encoder.init(5)
        encoder.append_int64(1001)
        encoder.append_string("world")
        second = encoder.build()

        cursor = ResultCursor.from_rows(schema, [first, second])
        checks = [
            ("size() == 2", cursor.size() == 2),
            ("column count == 2", cursor.schema().column_count() == 2),
            ("col1 is kTypeInt64", str(cursor.schema().column_type(0)) == "kTypeInt64"),
            ("col2 is kTypeString", str(cursor.schema().column_type(1)) == "kTypeString"),
        ]
        rows: List[tuple] = []
        for expected in ((1000, "hello"), (1001, "world")):
            moved = cursor.next()
            checks.append((f"next() -> row {expected[0]}", moved))
            got = (cursor.get_int64_unsafe(0), cursor.get_string_unsafe(1))
            checks.append((f"values == {expected}", got == expected))
            rows.append(got)
        checks.append(("next() after last row is False", cursor.next() is False))
    except RowCodecError as exc:
        _fail(exc)

    print_rows(schema, rows, title="Smoke test rows")
    failed = [name for name, ok in checks if not ok]
    for name, ok in checks:
        typer.secho(f"{'PASS' if ok else 'FAIL'}  {name}", fg=typer.colors.GREEN if ok else typer.colors.RED)
    if failed:
        raise typer.Exit(code=1)


@app.command()
def encode(
    schema: str = typer.Option(..., "--schema", "-s", help="Schema, e.g. 'col1:bigint, col2:string'."),
    row: List[str] = typer.Option(
        ...,
        "--row",
        "-r",
        help="Row values as one CSV line, quoting values that contain commas. "
        "Repeat for several rows. NULL for null.",
    ),
    out: Path = typer.Option(..., "--out", "-o", help="File to write the encoded payload to."),
) -> None:
    """
    Encode rows given on the command line into a result payload file.
    """
    parsed = _parse_schema(schema)
    payload = bytearray()
    try:
        for text in row:
            cells = next(csv.reader([text]), [])
            if len(cells) != parsed.column_count():
                raise typer.BadParameter(
                    f"Row {text!r} has {len(cells)} values, schema has {parsed.column_count()}",
                    param_hint="--row",
                )
            values = [parse_cell(t, c) for t, c in zip(parsed.types(), cells)]
            payload += encode_row(parsed, values)
    except (RowCodecError, ValueError) as exc:
        _fail(exc)
    out.write_bytes(bytes(payload))
    log.info("Payload written", extra={"path": str(out), "rows": len(row), "bytes": len(payload)})
    typer.echo(f"Wrote {len(row)} row(s), {len(payload)} bytes to {out}")


@app.command()
def inspect(
    payload: Path = typer.Argument(..., exists=True, dir_okay=False, help="Encoded payload file."),
    schema: str = typer.Option(..., "--schema", "-s", help="Schema the payload was encoded with."),
) -> None:
    """
    Decode a payload file and print its rows.
    """
    parsed = _parse_schema(schema)
    try:
        cursor = ResultCursor(parsed, payload.read_bytes())
        rows = list(cursor)
    except RowCodecError as exc:
        _fail(exc)
    print_rows(parsed, rows, title=str(payload))


@app.command()
def bench(
    rows: Optional[int] = typer.Option(
        None, "--rows", "-r", help="Rows to encode and decode (default from settings)."
    ),
    null_ratio: float = typer.Option(0.0, "--null-ratio", help="Share of NULL cells in nullable columns."),
    persist: bool = typer.Option(True, "--persist/--no-persist", help="Write results JSON."),
) -> None:
    """
    Measure encode and decode throughput on generated rows.
    """
    results = run_benchmark(rows=rows, null_ratio=null_ratio, persist=persist)
    print_bench_results(results)


@app.command()
def jobs(
    unfinished: bool = typer.Option(False, "--unfinished", help="Only jobs not in a final state."),
) -> None:
    """
    List job records from the job store.
    """
    try:
        with PoolManager().connection() as conn:
            records = JobStore(conn).list_jobs(unfinished_only=unfinished)
    except psycopg.Error as exc:
        log.error("Job store query failed", extra={"error": str(exc)})
        _fail(exc)
    print_jobs(records)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
