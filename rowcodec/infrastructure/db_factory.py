"""
Database connection factory for the job store.

Job records live in PostgreSQL. This module builds the DSN from settings,
opens single connections with retry on transient failures (tenacity), and
owns a lazily created psycopg pool that is closed on interpreter exit.
"""

from __future__ import annotations

import atexit
import threading
from contextlib import contextmanager
from typing import Generator, Optional

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from rowcodec.config import Settings, get_settings
from rowcodec.utils.logging import get_logger

log = get_logger(__name__)

_TRANSIENT_ERRORS = (psycopg.OperationalError, psycopg.InterfaceError)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


class PoolManager:
    """
    Process-wide owner of the job store connection pool.

    The pool is created on first use and closed by an atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._pool = None
                atexit.register(instance.close)
                cls._instance = instance
            return cls._instance

    def get_pool(self, min_size: int = 1, max_size: int = 4) -> ConnectionPool:
        with self._lock:
            if self._pool is None:
                log.info("Opening job store connection pool", extra={"max_size": max_size})
                self._pool = ConnectionPool(
                    conninfo=build_dsn(), min_size=min_size, max_size=max_size, open=True
                )
            return self._pool

    @contextmanager
    def connection(self) -> Generator[Connection, None, None]:
        """
        Borrow a connection from the pool.

        Example
        -------
            with PoolManager().connection() as conn:
                JobStore(conn).list_jobs()
        """
        with self.get_pool().connection() as conn:
            yield conn

    def close(self) -> None:
        with self._lock:
            if self._pool is not None:
                pool, self._pool = self._pool, None
                pool.close()


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(_TRANSIENT_ERRORS),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Open a dedicated connection, retrying transient failures up to 3 times.

    Raises
    ------
    psycopg.OperationalError
        If the connection still fails after all attempts.
    """
    return psycopg.connect(dsn or build_dsn())


def get_pool(min_size: int = 1, max_size: int = 4) -> ConnectionPool:
    return PoolManager().get_pool(min_size=min_size, max_size=max_size)


__all__ = [
    "PoolManager",
    "build_dsn",
    "get_pool",
    "get_sync_connection",
]
