from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from rowcodec.domain.jobs import JobRecord
from rowcodec.domain.schema import ColumnType, Schema

_NUMERIC = {
    ColumnType.INT16,
    ColumnType.INT32,
    ColumnType.INT64,
    ColumnType.FLOAT,
    ColumnType.DOUBLE,
    ColumnType.TIMESTAMP,
}


def _render(value: Any) -> str:
    if value is None:
        return "[dim]NULL[/dim]"
    if isinstance(value, date):
        return value.isoformat()
    return escape(str(value))


def print_rows(
    schema: Schema,
    rows: Iterable[Sequence[Any]],
    title: Optional[str] = None,
    console: Optional[Console] = None,
) -> None:
    """
    Render decoded rows as a rich table, one column per schema column.
    """
    console = console or Console()
    table = Table(title=title, box=box.ROUNDED)
    for column in schema.columns:
        table.add_column(
            f"{column.name}\n[dim]{column.type.value}[/dim]",
            justify="right" if column.type in _NUMERIC else "left",
            style="cyan" if column.type is ColumnType.STRING else None,
        )
    count = 0
    for row in rows:
        table.add_row(*(_render(v) for v in row))
        count += 1
    table.caption = f"{count} row(s)"
    console.print(table)


def print_bench_results(results: List[Dict[str, Any]], console: Optional[Console] = None) -> None:
    """
    Render benchmark stage results as a rich table.
    """
    console = console or Console()

    if not results:
        console.print("[yellow]No results to display.[/yellow]")
        return

    table = Table(title="Row Codec Benchmark", box=box.ROUNDED)
    table.add_column("Stage", style="cyan", no_wrap=True)
    table.add_column("Rows", justify="right", style="magenta")
    table.add_column("Duration (s)", justify="right", style="green")
    table.add_column("Throughput (rows/s)", justify="right", style="bold green")
    table.add_column("Peak Memory (MB)", justify="right", style="yellow")
    table.add_column("CPU %", justify="right", style="red")

    for res in results:
        mem_bytes = res.get("peak_rss_bytes") or 0
        cpu = res.get("cpu_percent") or 0.0
        table.add_row(
            res.get("label", "Unknown"),
            f"{res.get('items', 0):,}",
            f"{res.get('duration_seconds', 0.0):.3f}",
            f"{res.get('items_per_sec', 0.0):,.2f}",
            f"{mem_bytes / (1024 * 1024):.2f}",
            f"{cpu:.1f}",
        )

    payload_bytes = results[0].get("payload_bytes")
    if payload_bytes:
        table.caption = f"Encoded payload: {payload_bytes:,} bytes"
    console.print(table)


def print_jobs(jobs: Iterable[JobRecord], console: Optional[Console] = None) -> None:
    """
    Render job records as a rich table; final states are dimmed.
    """
    console = console or Console()
    table = Table(title="Jobs", box=box.ROUNDED)
    table.add_column("Id", justify="right", style="magenta")
    table.add_column("Type", style="cyan")
    table.add_column("State")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Application")
    table.add_column("Error", style="red")

    for job in jobs:
        state = str(job.state) if job.state else "-"
        if job.state is not None and job.state.is_final:
            state = f"[dim]{state}[/dim]"
        table.add_row(
            str(job.id),
            str(job.job_type),
            state,
            job.start_time.isoformat(timespec="seconds") if job.start_time else "-",
            job.end_time.isoformat(timespec="seconds") if job.end_time else "-",
            job.application_id or "-",
            escape(job.error),
        )
    console.print(table)
