from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

import pytest

from rowcodec.domain.jobs import JobRecord, JobState, JobStateError, JobType
from rowcodec.infrastructure.job_store import JobNotFoundError, JobStore

START = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeCursor:
    def __init__(self, conn: "FakeConnection") -> None:
        self._conn = conn

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None

    def execute(self, query: Any, params: Any = None) -> None:
        self._conn.executed.append((query, params))
        self.rowcount = self._conn.rowcount

    def fetchone(self) -> Optional[tuple]:
        return self._conn.fetchone_results.pop(0)

    def fetchall(self) -> List[tuple]:
        return self._conn.fetchall_result


class FakeConnection:
    """Records statements instead of talking to PostgreSQL."""

    def __init__(self) -> None:
        self.executed: List[tuple] = []
        self.fetchone_results: List[Optional[tuple]] = []
        self.fetchall_result: List[tuple] = []
        self.rowcount = 1
        self.commits = 0
        self.rollbacks = 0

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1


def _row(job_id: int, state: Optional[str]) -> tuple:
    return (job_id, "SparkBatchSql", state, START, None, "local", "select 1", "", "")


@pytest.fixture
def conn() -> FakeConnection:
    return FakeConnection()


def test_ensure_table_commits(conn):
    JobStore(conn, table="jobs_test").ensure_table()
    assert len(conn.executed) == 1
    assert conn.commits == 1


def test_create_defaults_state_and_start_time(conn):
    conn.fetchone_results = [(42,)]
    job = JobStore(conn, table="jobs_test").create(
        JobRecord(job_type=JobType.IMPORT_OFFLINE_DATA, parameter="load data")
    )
    assert job.id == 42
    assert job.state is JobState.SUBMITTED
    assert job.start_time is not None
    _, params = conn.executed[0]
    assert params[0] == "ImportOfflineData"
    assert params[1] == "submitted"
    assert params[5] == "load data"
    assert conn.commits == 1


def test_get_maps_row_to_record(conn):
    conn.fetchone_results = [_row(3, "RUNNING")]
    job = JobStore(conn, table="jobs_test").get(3)
    assert job.id == 3
    assert job.state is JobState.RUNNING
    assert job.job_type is JobType.SPARK_BATCH_SQL
    assert conn.executed[0][1] == (3,)


def test_get_missing_returns_none(conn):
    conn.fetchone_results = [None]
    assert JobStore(conn, table="jobs_test").get(99) is None


def test_list_jobs(conn):
    conn.fetchall_result = [_row(1, "finished"), _row(2, None)]
    jobs = JobStore(conn, table="jobs_test").list_jobs()
    assert [job.id for job in jobs] == [1, 2]
    assert conn.executed[0][1] == ()


def test_list_unfinished_passes_final_states(conn):
    conn.fetchall_result = []
    JobStore(conn, table="jobs_test").list_jobs(unfinished_only=True)
    (final_states,) = conn.executed[0][1]
    assert sorted(final_states) == ["failed", "finished", "killed", "lost"]


def test_update_state_persists_transition(conn):
    conn.fetchone_results = [_row(5, "running")]
    job = JobStore(conn, table="jobs_test").update_state(5, "failed", error="boom")
    assert job.state is JobState.FAILED
    assert job.end_time is not None
    _, params = conn.executed[1]
    assert params[0] == "failed"
    assert params[2] == "boom"
    assert params[4] == 5
    # the write is conditional on the state that was read
    assert params[5] == "running"
    assert conn.commits == 1


def test_update_state_loses_race_with_concurrent_writer(conn):
    conn.fetchone_results = [_row(5, "running")]
    conn.rowcount = 0
    with pytest.raises(JobStateError):
        JobStore(conn, table="jobs_test").update_state(5, "finished")
    assert conn.commits == 0
    assert conn.rollbacks == 1


def test_update_unknown_job(conn):
    conn.fetchone_results = [None]
    with pytest.raises(JobNotFoundError):
        JobStore(conn, table="jobs_test").update_state(5, "running")


def test_update_out_of_final_state_writes_nothing(conn):
    conn.fetchone_results = [_row(5, "finished")]
    with pytest.raises(JobStateError):
        JobStore(conn, table="jobs_test").update_state(5, "running")
    assert len(conn.executed) == 1
    assert conn.commits == 0
