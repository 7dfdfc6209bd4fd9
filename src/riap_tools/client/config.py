"""Configuration for the Riap::Simple client."""

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RiapConfig(BaseSettings):
    """Configuration for the Riap::Simple client.

    All settings can be configured via environment variables with RIAP_ prefix.

    Retry behaviour:
        - RIAP_RETRIES: extra connection attempts after the first (0 disables)
        - RIAP_RETRY_DELAY: seconds to wait between attempts

    Connection cache:
        - RIAP_CONNECTION_CACHE_SIZE: live connections/processes kept around

    Deadlines (seconds, empty to disable):
        - RIAP_CONNECT_TIMEOUT: TCP/Unix socket connect
        - RIAP_READ_TIMEOUT: each blocking read of a response
    """

    model_config = SettingsConfigDict(
        env_prefix="RIAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    retries: int = Field(default=2, ge=0)
    retry_delay: float = Field(default=3.0, ge=0.0)
    connection_cache_size: int = Field(
        default=32,
        ge=1,
        validation_alias=AliasChoices(
            "connection_cache_size",
            "conn_cache_size",
            "RIAP_CONNECTION_CACHE_SIZE",
            "RIAP_CONN_CACHE_SIZE",
        ),
    )

    connect_timeout: float | None = Field(default=10.0, gt=0.0)
    read_timeout: float | None = Field(
        default=120.0,
        gt=0.0,
        description="Deadline for each blocking read of a response",
    )

    log_level: str = Field(default="INFO")

    @field_validator("connect_timeout", "read_timeout", mode="before")
    @classmethod
    def empty_timeout_is_none(cls, v):
        """Treat an empty string (e.g. RIAP_READ_TIMEOUT=) as no deadline."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()
