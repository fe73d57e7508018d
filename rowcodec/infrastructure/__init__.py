"""
Infrastructure package for rowcodec.

Database connectivity and job record persistence. Keep this layer focused on
I/O and resource management, decoupled from the codec.
"""

from rowcodec.infrastructure.db_factory import (
    PoolManager,
    build_dsn,
    get_pool,
    get_sync_connection,
)
from rowcodec.infrastructure.job_store import JobNotFoundError, JobStore

__all__ = [
    "PoolManager",
    "build_dsn",
    "get_pool",
    "get_sync_connection",
    "JobNotFoundError",
    "JobStore",
]
