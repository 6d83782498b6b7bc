"""
statshub
Centralized Configuration Management

Pydantic settings with environment variable support. Each subsystem reads its
own section; components receive the section they need as a constructor
argument instead of importing a module-level settings object.
"""

from datetime import timedelta
from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """Redis aggregation store configuration"""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: Optional[SecretStr] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")
    max_connections: int = Field(default=100, description="Max connections")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")
    url: Optional[str] = Field(default=None, alias="REDIS_URL", description="Redis URL (overrides host/port)")

    key_prefix: str = Field(default="stats", description="Prefix for every statshub key")
    max_retries: int = Field(default=16, description="Optimistic transaction retries per upsert")
    read_batch_size: int = Field(default=500, description="Entities read per MULTI when scanning a dimension")

    def get_url(self) -> str:
        """Redis connection URL - uses REDIS_URL if set, otherwise builds from host/port"""
        if self.url:
            return self.url
        if self.password:
            return f"redis://:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class WarehouseSettings(BaseSettings):
    """Analytics warehouse configuration.

    ``url`` is the archival target. Leaving it unset disables the periodic
    archiver; the ingestion path keeps working.
    """

    model_config = SettingsConfigDict(env_prefix="WAREHOUSE_")

    url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy async URL, e.g. postgresql+asyncpg://user:pw@host/statshub",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")
    create_schema: bool = Field(default=True, description="Create the snapshot table on startup")


class ArchiveSettings(BaseSettings):
    """Periodic archival configuration"""

    model_config = SettingsConfigDict(env_prefix="ARCHIVE_")

    enabled: bool = Field(default=True, description="Run the periodic archiver when a warehouse is configured")
    intervals: Dict[str, int] = Field(
        default={"fallback": 600, "country": 3600, "user": 86400},
        description="Archive interval in seconds per dimension",
    )
    shutdown_timeout: float = Field(default=30.0, description="Seconds to let in-flight cycles finish on shutdown")

    @field_validator("intervals")
    @classmethod
    def validate_intervals(cls, v: Dict[str, int]) -> Dict[str, int]:
        """Intervals must be positive and dimension names usable as keys"""
        for dimension, seconds in v.items():
            if not dimension or ":" in dimension:
                raise ValueError(f"Invalid dimension name: {dimension!r}")
            if seconds <= 0:
                raise ValueError(f"Interval for {dimension} must be positive")
        return v

    @property
    def schedules(self) -> Dict[str, timedelta]:
        return {dimension: timedelta(seconds=seconds) for dimension, seconds in self.intervals.items()}


class AuthSettings(BaseSettings):
    """Identity provider configuration"""

    model_config = SettingsConfigDict(env_prefix="AUTH_")

    provider: str = Field(default="google_oauth", description="Identity provider: google_oauth or header")
    userinfo_url: str = Field(
        default="https://openidconnect.googleapis.com/v1/userinfo",
        description="OAuth userinfo endpoint used to resolve bearer tokens",
    )
    timeout: float = Field(default=5.0, description="Identity provider timeout in seconds")
    header_name: str = Field(
        default="X-Goog-Authenticated-User-Email",
        description="Header carrying the identity when behind an authenticating proxy",
    )

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        allowed = ["google_oauth", "header"]
        if v.lower() not in allowed:
            raise ValueError(f"Identity provider must be one of: {allowed}")
        return v.lower()


class SecuritySettings(BaseSettings):
    """HTTP security configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    cors_origins: List[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Monitoring and Observability Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="statshub", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8080, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    redis: RedisSettings = Field(default_factory=RedisSettings)
    warehouse: WarehouseSettings = Field(default_factory=WarehouseSettings)
    archive: ArchiveSettings = Field(default_factory=ArchiveSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
