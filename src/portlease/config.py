"""portlease configuration management."""

from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_database_path() -> Path:
    """Return the default lease database location (~/.portmanager/leases.db)."""
    return Path.home() / ".portmanager" / "leases.db"


class Settings(BaseSettings):
    """portlease configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="PORTLEASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # General
    log_level: str = "INFO"
    debug: bool = False

    # Pool (inclusive bounds)
    pool_min: int = Field(default=8000, description="Lowest port handed out")
    pool_max: int = Field(default=9000, description="Highest port handed out")

    # Lease behavior
    default_ttl_seconds: int = Field(default=300, description="Default lease TTL (5 min)")
    sweep_interval_seconds: float = Field(default=10.0, description="Expiry sweep cadence")

    # Persistence
    database_path: Path = Field(
        default_factory=default_database_path,
        description="SQLite file holding the lease table",
    )

    # Server
    host: str = "127.0.0.1"
    port: int = 3030

    # CORS (the dashboard is served from a separate dev origin)
    cors_allowed_origins: list[str] = Field(
        default=["http://localhost:5173", "http://127.0.0.1:5173"],
        description="Allowed CORS origins",
    )

    # Validators
    @field_validator("pool_min", "pool_max", "port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port number range."""
        if not 1 <= v <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {v}")
        return v

    @field_validator("default_ttl_seconds")
    @classmethod
    def validate_ttl(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"default_ttl_seconds must be positive, got {v}")
        return v

    @field_validator("sweep_interval_seconds")
    @classmethod
    def validate_sweep_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"sweep_interval_seconds must be positive, got {v}")
        return v

    @field_validator("database_path")
    @classmethod
    def expand_database_path(cls, v: Path) -> Path:
        return v.expanduser()

    @model_validator(mode="after")
    def validate_pool_bounds(self) -> "Settings":
        """The pool must contain at least one port."""
        if self.pool_min > self.pool_max:
            raise ValueError(
                f"pool_min ({self.pool_min}) must not exceed pool_max ({self.pool_max})"
            )
        return self

    @property
    def pool_size(self) -> int:
        return self.pool_max - self.pool_min + 1


settings = Settings()
