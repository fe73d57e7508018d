import json
from io import StringIO
from pathlib import Path
from time import sleep

from rich.console import Console

from rowcodec import config
from rowcodec.bench import DEFAULT_SCHEMA, generate_values, run_benchmark
from rowcodec.domain.jobs import JobRecord, JobState, JobType
from rowcodec.domain.schema import Schema
from rowcodec.infrastructure.db_factory import build_dsn
from rowcodec.reporter import print_bench_results, print_jobs, print_rows
from rowcodec.utils import profiler


def test_get_settings_defaults(monkeypatch, clear_settings_cache):
    for name in ("DB_HOST", "DB_PORT", "DB_NAME", "JOB_TABLE", "BENCHMARK_ROWS"):
        monkeypatch.delenv(name, raising=False)
    settings = config.get_settings()
    assert settings.db_host == "localhost"
    assert settings.db_port == 5432
    assert settings.db_name == "taskmanager"
    assert settings.job_table == "job_info"
    assert settings.benchmark_rows > 0


def test_settings_read_environment(monkeypatch, clear_settings_cache):
    monkeypatch.setenv("JOB_TABLE", "jobs_v2")
    monkeypatch.setenv("BENCHMARK_ROWS", "10")
    settings = config.get_settings()
    assert settings.job_table == "jobs_v2"
    assert settings.benchmark_rows == 10


def test_build_dsn():
    settings = config.Settings(db_user="u", db_password="p", db_host="h", db_port=1, db_name="d")
    assert build_dsn(settings) == "postgresql://u:p@h:1/d"


def test_profile_block_measures_time():
    with profiler.profile_block("sleep") as stats:
        sleep(0.05)
    assert stats.duration_seconds >= 0.05
    assert stats.peak_rss_bytes > 0
    if stats.cpu_percent is not None:
        assert isinstance(stats.cpu_percent, float)


def test_profile_stats_as_dict_merges_extra():
    stats = profiler.ProfileStats(label="encode", duration_seconds=2.0, items=10)
    stats.extra["payload_bytes"] = 99
    data = stats.as_dict()
    assert data["items_per_sec"] == 5.0
    assert data["payload_bytes"] == 99


def test_generate_values_is_deterministic():
    first = generate_values(DEFAULT_SCHEMA, 20, seed=3, null_ratio=0.3)
    assert first == generate_values(DEFAULT_SCHEMA, 20, seed=3, null_ratio=0.3)
    assert first != generate_values(DEFAULT_SCHEMA, 20, seed=4, null_ratio=0.3)
    # the id column is NOT NULL
    assert all(row[0] == i for i, row in enumerate(first))


def test_run_benchmark_writes_results(tmp_path: Path):
    results = run_benchmark(rows=50, seed=1, null_ratio=0.1, results_dir=tmp_path)
    assert [r["label"] for r in results] == ["encode", "decode_unsafe", "decode_checked"]
    assert all(r["items"] == 50 for r in results)
    latest = json.loads((tmp_path / "latest.json").read_text(encoding="utf-8"))
    assert latest["rows"] == 50
    assert len(latest["results"]) == 3
    assert len(list(tmp_path.glob("run-*.json"))) == 1


def test_run_benchmark_without_persist(tmp_path: Path):
    run_benchmark(rows=5, seed=1, results_dir=tmp_path, persist=False)
    assert not (tmp_path / "latest.json").exists()


def _console() -> Console:
    return Console(file=StringIO(), width=160, color_system=None)


def test_print_rows_shows_nulls_and_count():
    console = _console()
    print_rows(Schema.parse("id:bigint, name:string"), [(1, "[b]x"), (2, None)], console=console)
    output = console.file.getvalue()
    assert "[b]x" in output
    assert "NULL" in output
    assert "2 row(s)" in output


def test_print_bench_results_empty():
    console = _console()
    print_bench_results([], console=console)
    assert "No results to display." in console.file.getvalue()


def test_print_jobs():
    console = _console()
    print_jobs([JobRecord(id=1, job_type=JobType.SPARK_BATCH_SQL, state=JobState.FAILED, error="bad")], console=console)
    output = console.file.getvalue()
    assert "SparkBatchSql" in output
    assert "failed" in output
