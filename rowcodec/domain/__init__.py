"""
Domain package for rowcodec.

Exports the schema description shared by the codec and the job record models.
Keep this package focused on data definitions and validation concerns.
"""

from rowcodec.domain.jobs import FINAL_STATES, JobRecord, JobState, JobStateError, JobType
from rowcodec.domain.schema import ColumnDef, ColumnType, Schema, schema_from_pairs

__all__ = [
    "ColumnDef",
    "ColumnType",
    "Schema",
    "schema_from_pairs",
    "FINAL_STATES",
    "JobRecord",
    "JobState",
    "JobStateError",
    "JobType",
]
