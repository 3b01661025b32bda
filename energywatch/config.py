"""
Service configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or .env files;
no hardcoded URLs or credentials.

CHANGELOG:
- 2026-10-14: Add retention and crop settings
- 2026-10-12: Add ingestion scheduler settings
- 2026-10-11: Initial creation

TODO:
- None
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """energywatch API configuration.

    Attributes:
        database_url: SQLAlchemy async database URL.
        redis_url: Redis URL for the current-snapshot cache.
        user_tokens: Comma-separated ``token:user_id`` pairs.
        cache_ttl_s: TTL of cached current snapshots in seconds.
        ingest_enabled: Whether the background ingestion scheduler runs.
        ingest_interval_s: Seconds between scheduled ingestion ticks.
        energy_interval_h: Sampling interval (hours) used for the energy
            of scheduled samples.
        retention_max_age_h: Samples older than this are pruned after a
            single-device update.
        crop_batch_size: Number of oldest samples removed per device by
            the crop operation.
        history_default_hours: Window used when history is requested
            without ``hours``.
        host: Interface the API server binds to.
        port: Port the API server listens on.
    """

    database_url: str
    redis_url: str
    user_tokens: str
    cache_ttl_s: int = 5
    ingest_enabled: bool = True
    ingest_interval_s: int = 300
    energy_interval_h: float = 0.5
    retention_max_age_h: float = 24.0
    crop_batch_size: int = 10
    history_default_hours: float = 24.0
    host: str = "0.0.0.0"
    port: int = 5001

    @field_validator("ingest_interval_s")
    @classmethod
    def ingest_interval_must_be_positive(cls, v: int) -> int:
        """Validate the scheduler period is at least one second."""
        if v < 1:
            raise ValueError("INGEST_INTERVAL_S must be >= 1")
        return v

    @field_validator(
        "energy_interval_h", "retention_max_age_h", "history_default_hours"
    )
    @classmethod
    def hours_must_be_positive(cls, v: float) -> float:
        """Validate hour-based settings are strictly positive."""
        if v <= 0:
            raise ValueError("Hour-based settings must be > 0")
        return v

    @field_validator("crop_batch_size")
    @classmethod
    def crop_batch_size_must_be_valid(cls, v: int) -> int:
        """Validate crop batch size is between 1 and 1000."""
        if v < 1 or v > 1000:
            raise ValueError("CROP_BATCH_SIZE must be >= 1 and <= 1000")
        return v

    @field_validator("port")
    @classmethod
    def port_must_be_valid(cls, v: int) -> int:
        """Validate TCP port is in valid range."""
        if v < 1 or v > 65535:
            raise ValueError("PORT must be between 1 and 65535")
        return v

    @field_validator("cache_ttl_s")
    @classmethod
    def cache_ttl_must_be_positive(cls, v: int) -> int:
        """Validate cache TTL is at least one second."""
        if v < 1:
            raise ValueError("CACHE_TTL_S must be >= 1")
        return v

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
