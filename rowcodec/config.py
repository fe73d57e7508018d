"""
Configuration settings for rowcodec.

Uses Pydantic Settings to load environment variables for logging, the job
store database connection, and the codec benchmark defaults. The codec itself
takes no configuration: the row format is a fixed contract with the engine.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Job store database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("taskmanager", alias="DB_NAME")
    job_table: str = Field("job_info", alias="JOB_TABLE")

    # Codec benchmark defaults
    benchmark_rows: int = Field(100_000, alias="BENCHMARK_ROWS")
    benchmark_seed: int = Field(42, alias="BENCHMARK_SEED")
    results_dir: str = Field("results", alias="RESULTS_DIR")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
