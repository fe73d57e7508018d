"""
Pytest configuration for rowcodec.

Provides fixtures for:
- Schemas used across the codec tests
- Settings with a clean cache
- Database connection management for job store integration tests
"""

from __future__ import annotations

import os
from typing import Generator

import psycopg
import pytest

from rowcodec.config import Settings, get_settings
from rowcodec.domain.schema import ColumnType, Schema


@pytest.fixture
def smoke_schema() -> Schema:
    """The two-column table used by the router smoke test."""
    return Schema.of(("col1", ColumnType.INT64), ("col2", ColumnType.STRING))


@pytest.fixture
def all_types_schema() -> Schema:
    """One column of every supported type, strings interleaved with fixed columns."""
    return Schema.parse(
        "flag:bool, small:smallint, medium:int, big:bigint!, name:string, "
        "ratio:float, score:double, note:string, created:timestamp, day:date"
    )


@pytest.fixture
def clear_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "taskmanager"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection(test_dsn: str) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    try:
        conn = psycopg.connect(test_dsn, connect_timeout=5)
    except psycopg.OperationalError:
        pytest.skip("Database not available for integration tests")
    try:
        yield conn
    finally:
        conn.close()
