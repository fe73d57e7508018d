"""
Integration tests for the PostgreSQL job store.

These tests run against a real PostgreSQL instance and verify that:
1. The job table can be created
2. Jobs round-trip through insert and select
3. State transitions are persisted and guarded

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import os
import uuid
from typing import Generator

import psycopg
import pytest
from psycopg import sql

from rowcodec.domain.jobs import JobRecord, JobState, JobStateError, JobType
from rowcodec.infrastructure.db_factory import get_sync_connection
from rowcodec.infrastructure.job_store import JobNotFoundError, JobStore

pytestmark = pytest.mark.skipif(
    os.getenv("RUN_INTEGRATION_TESTS", "0") != "1",
    reason="Integration tests require RUN_INTEGRATION_TESTS=1 and reachable Postgres",
)


@pytest.fixture
def store(db_connection: psycopg.Connection) -> Generator[JobStore, None, None]:
    """A job store on a throwaway table, dropped after the test."""
    table = f"job_info_test_{uuid.uuid4().hex[:8]}"
    job_store = JobStore(db_connection, table=table)
    job_store.ensure_table()
    yield job_store
    db_connection.rollback()
    with db_connection.cursor() as cur:
        cur.execute(sql.SQL("DROP TABLE IF EXISTS {}").format(sql.Identifier(table)))
    db_connection.commit()


def test_create_and_get(store: JobStore):
    created = store.create(JobRecord(job_type=JobType.SPARK_BATCH_SQL, parameter="select 1"))
    assert created.id > 0

    fetched = store.get(created.id)
    assert fetched is not None
    assert fetched.state is JobState.SUBMITTED
    assert fetched.parameter == "select 1"
    assert fetched.start_time is not None


def test_lifecycle_and_listing(store: JobStore):
    first = store.create(JobRecord(job_type=JobType.IMPORT_OFFLINE_DATA))
    second = store.create(JobRecord(job_type=JobType.IMPORT_ONLINE_DATA))

    store.update_state(first.id, JobState.RUNNING, application_id="app-1")
    done = store.update_state(first.id, JobState.FINISHED)
    assert done.end_time is not None

    assert [job.id for job in store.list_jobs()] == [first.id, second.id]
    assert [job.id for job in store.list_jobs(unfinished_only=True)] == [second.id]

    persisted = store.get(first.id)
    assert persisted.is_final()
    assert persisted.application_id == "app-1"


def test_transition_out_of_final_state_is_rejected(store: JobStore):
    job = store.create(JobRecord(job_type=JobType.SPARK_BATCH_SQL))
    store.update_state(job.id, "killed")
    with pytest.raises(JobStateError):
        store.update_state(job.id, "running")
    assert store.get(job.id).state is JobState.KILLED


def test_unknown_job(store: JobStore):
    with pytest.raises(JobNotFoundError):
        store.update_state(999_999, JobState.RUNNING)


def test_sync_connection_with_retry(test_dsn: str):
    with get_sync_connection(test_dsn) as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1")
            assert cur.fetchone() == (1,)
