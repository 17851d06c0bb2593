"""Pydantic models for masterq configuration.

Provides validated configuration models for type safety and runtime validation.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from masterq.address import Region, is_decimal

DEFAULT_RETRIES = 3

# Valve's public master directories
SOURCE_MASTER_SERVER = "hl2master.steampowered.com:27011"
GOLDSRC_MASTER_SERVER = "hl1master.steampowered.com:27010"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class MasterConfig(BaseModel):
    """Master directory query configuration."""

    host: str = Field(
        default="hl2master.steampowered.com",
        description="Master server hostname or IPv4 address",
    )
    port: int = Field(default=27011, ge=1, le=65535, description="Master server port")
    retries: int = Field(
        default=DEFAULT_RETRIES,
        ge=1,
        le=100,
        description="Send attempts per page when no alternate master address is left",
    )
    timeout: float = Field(
        default=1.0,
        gt=0.0,
        le=60.0,
        description="Seconds to wait for each reply",
    )
    region: Region = Field(default=Region.ALL, description="Default region filter")

    @field_validator("host")
    @classmethod
    def validate_host(cls, v):
        """Reject empty hostnames."""
        if not v or not v.strip():
            msg = "Master server host cannot be empty"
            raise ValueError(msg)
        return v.strip()

    @field_validator("region", mode="before")
    @classmethod
    def validate_region(cls, v):
        """Accept region names (``"europe"``) as well as codes."""
        if isinstance(v, str) and not is_decimal(v):
            try:
                return Region[v.strip().upper()]
            except KeyError:
                msg = f"Unknown region name: {v}"
                raise ValueError(msg) from None
        if isinstance(v, str):
            return int(v)
        return v


class GameServerConfig(BaseModel):
    """Single game-server query configuration."""

    timeout: float = Field(
        default=1.0,
        gt=0.0,
        le=60.0,
        description="Seconds to wait for each reply",
    )
    retries: int = Field(default=DEFAULT_RETRIES, ge=1, le=100, description="Send attempts per request")


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: LogLevel = Field(default=LogLevel.WARNING, description="Log level")
    log_file: str | None = Field(None, description="Log file path")
    structured_logging: bool = Field(
        default=False,
        description="Write JSON records to the log file",
    )
    log_correlation_id: bool = Field(
        default=True,
        description="Include correlation IDs",
    )


class Config(BaseModel):
    """Main configuration model."""

    master: MasterConfig = Field(
        default_factory=MasterConfig,
        description="Master server configuration",
    )
    game: GameServerConfig = Field(
        default_factory=GameServerConfig,
        description="Game server query configuration",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )
