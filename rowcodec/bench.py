"""
Encode/decode throughput benchmark for the row codec.

Usage (example from CLI):
    from rowcodec.bench import run_benchmark

    results = run_benchmark(rows=100_000)
    print(results)

Outputs are saved to `results/` by default:
- `results/latest.json` (last run)
- `results/run-<timestamp>.json` (timestamped archive)
"""

from __future__ import annotations

import json
import random
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from rowcodec.codec.cursor import ResultCursor
from rowcodec.codec.encoder import encode_row
from rowcodec.config import get_settings
from rowcodec.domain.schema import ColumnType, Schema
from rowcodec.utils.logging import get_logger
from rowcodec.utils.profiler import profile_block

log = get_logger(__name__)

DEFAULT_SCHEMA = Schema.parse(
    "id:bigint!, name:string, score:double, active:bool, created:timestamp, day:date, qty:int"
)

_WORDS = ("alpha", "beta", "gamma", "delta", "epsilon", "zeta", "eta", "theta")


def _random_value(rng: random.Random, col_type: ColumnType, row: int) -> Any:
    if col_type is ColumnType.BOOL:
        return rng.random() < 0.5
    if col_type is ColumnType.INT16:
        return rng.randint(-(1 << 15), (1 << 15) - 1)
    if col_type is ColumnType.INT32:
        return rng.randint(-(1 << 31), (1 << 31) - 1)
    if col_type is ColumnType.INT64:
        return row
    if col_type is ColumnType.FLOAT:
        return float(rng.randint(-1000, 1000)) / 4
    if col_type is ColumnType.DOUBLE:
        return rng.uniform(-1e6, 1e6)
    if col_type is ColumnType.TIMESTAMP:
        return 1_600_000_000_000 + rng.randint(0, 10**10)
    if col_type is ColumnType.DATE:
        return date.fromordinal(rng.randint(date(1970, 1, 1).toordinal(), date(2100, 1, 1).toordinal()))
    return "-".join(rng.choice(_WORDS) for _ in range(rng.randint(1, 4)))


def generate_values(
    schema: Schema, count: int, seed: int = 0, null_ratio: float = 0.0
) -> List[Tuple[Any, ...]]:
    """
    Deterministic pseudo-random rows matching `schema`.

    Nullable columns receive None with probability `null_ratio`.
    """
    rng = random.Random(seed)
    rows: List[Tuple[Any, ...]] = []
    for i in range(count):
        values = []
        for column in schema.columns:
            if column.nullable and null_ratio and rng.random() < null_ratio:
                values.append(None)
            else:
                values.append(_random_value(rng, column.type, i))
        rows.append(tuple(values))
    return rows


def _decode_unsafe(schema: Schema, payload: bytes) -> int:
    cursor = ResultCursor(schema, payload)
    readers: List[Callable[[int], Any]] = [
        getattr(cursor, f"get_{column.type.name.lower()}_unsafe") for column in schema.columns
    ]
    count = 0
    while cursor.next():
        for col, read in enumerate(readers):
            if not cursor.is_null_unsafe(col):
                read(col)
        count += 1
    return count


def _decode_checked(schema: Schema, payload: bytes) -> List[Tuple[Any, ...]]:
    return list(ResultCursor(schema, payload))


def _persist_results(payload: dict, results_dir: Path) -> None:
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    archive_path = results_dir / f"run-{timestamp}.json"

    for path in (latest_path, archive_path):
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)

    log.info("Results persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})


def run_benchmark(
    rows: Optional[int] = None,
    schema: Optional[Schema] = None,
    seed: Optional[int] = None,
    null_ratio: float = 0.0,
    results_dir: Path | str | None = None,
    persist: bool = True,
) -> List[Dict[str, Any]]:
    """
    Encode `rows` generated rows, then decode them with both accessor families.

    Parameters
    ----------
    rows : int | None
        Number of rows. Defaults to settings.benchmark_rows.
    schema : Schema | None
        Row schema. Defaults to DEFAULT_SCHEMA.
    seed : int | None
        Generator seed. Defaults to settings.benchmark_seed.
    null_ratio : float
        Share of NULL cells in nullable columns.
    results_dir : Path | str | None
        Directory for JSON artifacts. Defaults to settings.results_dir.
    persist : bool
        Whether to write results to disk.

    Returns
    -------
    List[dict]
        One entry per stage (`encode`, `decode_unsafe`, `decode_checked`).

    Raises
    ------
    RuntimeError
        If the checked decode does not reproduce the generated values.
    """
    settings = get_settings()
    count = rows if rows is not None else settings.benchmark_rows
    schema = schema or DEFAULT_SCHEMA
    seed = settings.benchmark_seed if seed is None else seed

    values = generate_values(schema, count, seed=seed, null_ratio=null_ratio)
    log.info(
        "[BENCH START] codec",
        extra={"rows": count, "schema": schema.describe(), "seed": seed},
    )

    with profile_block("encode") as encode_stats:
        payload = b"".join(encode_row(schema, row) for row in values)
    encode_stats.items = count
    encode_stats.extra["payload_bytes"] = len(payload)

    with profile_block("decode_unsafe") as unsafe_stats:
        unsafe_stats.items = _decode_unsafe(schema, payload)

    with profile_block("decode_checked") as checked_stats:
        decoded = _decode_checked(schema, payload)
    checked_stats.items = len(decoded)

    # generated floats are multiples of 0.25, so single precision reproduces them
    if decoded != values:
        raise RuntimeError("Decoded rows do not match the encoded values")

    results = [s.as_dict() for s in (encode_stats, unsafe_stats, checked_stats)]
    for result in results:
        log.info(
            f"[BENCH STAGE] {result['label']}",
            extra={"rows": result["items"], "rows_per_sec": result["items_per_sec"]},
        )

    if persist:
        _persist_results(
            {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "rows": count,
                "schema": schema.describe(),
                "seed": seed,
                "results": results,
            },
            Path(results_dir or settings.results_dir),
        )
    return results


__all__ = ["DEFAULT_SCHEMA", "generate_values", "run_benchmark"]
