"""
PostgreSQL persistence for job records.

The store works on a caller-supplied psycopg connection, so it can be used
with a dedicated connection or one borrowed from the pool:

    with PoolManager().connection() as conn:
        store = JobStore(conn)
        store.ensure_table()
        job = store.create(JobRecord(job_type=JobType.SPARK_BATCH_SQL, parameter=sql))
        store.update_state(job.id, JobState.RUNNING)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

import psycopg
from psycopg import sql

from rowcodec.config import get_settings
from rowcodec.domain.jobs import FINAL_STATES, JobRecord, JobState, JobStateError
from rowcodec.utils.logging import get_logger

log = get_logger(__name__)

_COLUMNS = (
    "id",
    "job_type",
    "state",
    "start_time",
    "end_time",
    "cluster",
    "parameter",
    "application_id",
    "error",
)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS {table} (
    id BIGSERIAL PRIMARY KEY,
    job_type VARCHAR(64) NOT NULL,
    state VARCHAR(32),
    start_time TIMESTAMPTZ,
    end_time TIMESTAMPTZ,
    cluster VARCHAR(255) NOT NULL DEFAULT '',
    parameter TEXT NOT NULL DEFAULT '',
    application_id VARCHAR(255) NOT NULL DEFAULT '',
    error TEXT NOT NULL DEFAULT ''
);
"""


class JobNotFoundError(LookupError):
    """Raised when a job id does not exist in the store."""


def _row_to_job(row: Sequence[Any]) -> JobRecord:
    return JobRecord(**dict(zip(_COLUMNS, row)))


class JobStore:
    """
    CRUD access to the job table.

    Parameters
    ----------
    conn : psycopg.Connection
        Open connection; the store commits after every write.
    table : str, optional
        Table name, defaults to settings.job_table.
    """

    def __init__(self, conn: psycopg.Connection, table: Optional[str] = None) -> None:
        self._conn = conn
        self._table = sql.Identifier(table or get_settings().job_table)

    def _select(self) -> sql.Composed:
        return sql.SQL("SELECT {cols} FROM {table}").format(
            cols=sql.SQL(", ").join(map(sql.Identifier, _COLUMNS)),
            table=self._table,
        )

    def ensure_table(self) -> None:
        with self._conn.cursor() as cur:
            cur.execute(sql.SQL(_CREATE_TABLE).format(table=self._table))
        self._conn.commit()

    def create(self, job: JobRecord) -> JobRecord:
        """Insert `job` and return it with the id assigned by the database."""
        if job.state is None:
            job = job.model_copy(update={"state": JobState.SUBMITTED})
        if job.start_time is None:
            job = job.model_copy(update={"start_time": datetime.now(timezone.utc)})
        columns = _COLUMNS[1:]
        query = sql.SQL("INSERT INTO {table} ({cols}) VALUES ({vals}) RETURNING id").format(
            table=self._table,
            cols=sql.SQL(", ").join(map(sql.Identifier, columns)),
            vals=sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        )
        params = (
            job.job_type.value,
            job.state.value if job.state else None,
            job.start_time,
            job.end_time,
            job.cluster,
            job.parameter,
            job.application_id,
            job.error,
        )
        with self._conn.cursor() as cur:
            cur.execute(query, params)
            (job_id,) = cur.fetchone()
        self._conn.commit()
        log.info("Job created", extra={"job_id": job_id, "job_type": job.job_type.value})
        return job.model_copy(update={"id": job_id})

    def get(self, job_id: int) -> Optional[JobRecord]:
        query = self._select() + sql.SQL(" WHERE id = %s")
        with self._conn.cursor() as cur:
            cur.execute(query, (job_id,))
            row = cur.fetchone()
        return _row_to_job(row) if row else None

    def list_jobs(self, unfinished_only: bool = False) -> List[JobRecord]:
        query = self._select()
        params: tuple = ()
        if unfinished_only:
            query += sql.SQL(" WHERE state IS NULL OR lower(state) <> ALL(%s)")
            params = ([state.value for state in FINAL_STATES],)
        query += sql.SQL(" ORDER BY id")
        with self._conn.cursor() as cur:
            cur.execute(query, params)
            rows = cur.fetchall()
        return [_row_to_job(row) for row in rows]

    def update_state(
        self,
        job_id: int,
        state: JobState | str,
        error: Optional[str] = None,
        application_id: Optional[str] = None,
    ) -> JobRecord:
        """
        Move a job to `state` and persist it.

        Raises JobNotFoundError for unknown ids and JobStateError for
        transitions out of a final state. The UPDATE only applies while the
        stored state is still the one the transition was checked against, so
        a concurrent writer makes this call fail with JobStateError instead
        of being overwritten.
        """
        current = self.get(job_id)
        if current is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        updated = current.with_state(state, error=error, application_id=application_id)
        query = sql.SQL(
            "UPDATE {table} SET state = %s, end_time = %s, error = %s, application_id = %s "
            "WHERE id = %s AND lower(state) IS NOT DISTINCT FROM %s"
        ).format(table=self._table)
        with self._conn.cursor() as cur:
            cur.execute(
                query,
                (
                    updated.state.value if updated.state else None,
                    updated.end_time,
                    updated.error,
                    updated.application_id,
                    job_id,
                    current.state.value if current.state else None,
                ),
            )
            changed = cur.rowcount
        if changed != 1:
            self._conn.rollback()
            raise JobStateError(
                f"Job {job_id} left state {current.state} before it could move to {updated.state}"
            )
        self._conn.commit()
        log.info(
            "Job state updated",
            extra={"job_id": job_id, "from": str(current.state), "to": str(updated.state)},
        )
        return updated


__all__ = ["JobNotFoundError", "JobStore"]
