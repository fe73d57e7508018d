"""
Job records as kept by the task manager.

A JobRecord describes one submitted batch or import job. States and job types
are closed enumerations; strings coming from storage are parsed
case-insensitively at the model boundary so the rest of the code never
compares raw state strings.
"""
from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class JobStateError(ValueError):
    """Raised when a job's state is unset or a transition is not allowed."""


class JobState(str, enum.Enum):
    SUBMITTED = "submitted"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"
    KILLED = "killed"
    LOST = "lost"

    def __str__(self) -> str:
        return self.value

    @property
    def is_final(self) -> bool:
        return self in FINAL_STATES

    @classmethod
    def parse(cls, value: str) -> "JobState":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise JobStateError(f"Unknown job state: {value!r}") from None


FINAL_STATES = frozenset({JobState.FINISHED, JobState.FAILED, JobState.KILLED, JobState.LOST})


class JobType(str, enum.Enum):
    SPARK_BATCH_SQL = "SparkBatchSql"
    IMPORT_OFFLINE_DATA = "ImportOfflineData"
    IMPORT_ONLINE_DATA = "ImportOnlineData"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> "JobType":
        key = value.strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        raise ValueError(f"Unknown job type: {value!r}")


class JobRecord(BaseModel):
    """
    Representation of a single row in the `job_info` table.
    """

    id: int = Field(0, description="Job id, assigned by the store.")
    job_type: JobType = Field(..., description="Kind of job.")
    state: Optional[JobState] = Field(None, description="Lifecycle state.")
    start_time: Optional[datetime] = Field(None, description="Submission time.")
    end_time: Optional[datetime] = Field(None, description="Time the job reached a final state.")
    cluster: str = Field("", description="Cluster the job runs on.")
    parameter: str = Field("", description="Opaque job parameter, usually the SQL text.")
    application_id: str = Field("", description="Id assigned by the resource manager.")
    error: str = Field("", description="Error message of a failed job.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    @field_validator("state", mode="before")
    @classmethod
    def _parse_state(cls, value):
        if isinstance(value, str) and not isinstance(value, JobState):
            return JobState.parse(value)
        return value

    @field_validator("job_type", mode="before")
    @classmethod
    def _parse_job_type(cls, value):
        if isinstance(value, str) and not isinstance(value, JobType):
            return JobType.parse(value)
        return value

    def is_final(self) -> bool:
        """
        Whether the job is in a terminal state.

        Raises JobStateError when the state has never been set.
        """
        if self.state is None:
            raise JobStateError(f"Job {self.id} has no state")
        return self.state.is_final

    def with_state(
        self,
        state: JobState | str,
        error: Optional[str] = None,
        application_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "JobRecord":
        """
        Return a copy moved to `state`.

        Entering a final state stamps `end_time`. A job already in a final
        state cannot move again.
        """
        if isinstance(state, str) and not isinstance(state, JobState):
            state = JobState.parse(state)
        if self.state is not None and self.state.is_final and state is not self.state:
            raise JobStateError(f"Job {self.id} is already {self.state}, cannot move to {state}")
        update = {"state": state}
        if state.is_final and self.end_time is None:
            update["end_time"] = now or datetime.now(timezone.utc)
        if error is not None:
            update["error"] = error
        if application_id is not None:
            update["application_id"] = application_id
        return self.model_copy(update=update)

    def __str__(self) -> str:
        return (
            f"id: {self.id}, jobType: {self.job_type}, state: {self.state}, "
            f"cluster: {self.cluster}, parameter: {self.parameter}, "
            f"applicationId: {self.application_id}, error: {self.error}"
        )


__all__ = ["FINAL_STATES", "JobRecord", "JobState", "JobStateError", "JobType"]
