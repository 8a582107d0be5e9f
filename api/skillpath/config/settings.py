"""Application settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="skillpath", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment name"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_workers: int = Field(default=1, description="Number of workers")

    # Storage
    storage_backend: Literal["cassandra", "memory"] = Field(
        default="cassandra",
        description="Backend for course trees, ledgers and certificates",
    )

    # Redis
    redis_enabled: bool = Field(
        default=True, description="Use Redis for cross-worker ledger locks"
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    redis_max_connections: int = Field(default=10, description="Max Redis connections")
    redis_socket_timeout: float = Field(default=5.0, description="Redis socket timeout")
    redis_socket_connect_timeout: float = Field(
        default=5.0, description="Redis connect timeout"
    )
    redis_retry_on_timeout: bool = Field(default=True, description="Retry on timeout")
    redis_health_check_interval: int = Field(
        default=30, description="Health check interval"
    )

    # Cassandra
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Cassandra hosts"
    )
    cassandra_port: int = Field(default=9042, description="Cassandra port")
    cassandra_keyspace: str = Field(
        default="skillpath", description="Cassandra keyspace"
    )
    cassandra_username: str | None = Field(default=None, description="Cassandra user")
    cassandra_password: str | None = Field(
        default=None, description="Cassandra password"
    )
    cassandra_protocol_version: int = Field(default=4, description="Protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="DEBUG", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log format"
    )
    log_include_caller_info: bool = Field(
        default=True, description="Include caller info"
    )
    log_file_enabled: bool = Field(
        default=True, description="Also write rotating JSON log files"
    )
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Max size per log file (10MB default)"
    )
    log_file_backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )
    log_requests: bool = Field(
        default=True, description="Log HTTP request start/finish"
    )
    log_exclude_paths: list[str] = Field(
        default=["/health", "/health/live", "/health/ready"],
        description="Paths to exclude from request logging",
    )

    # CORS
    cors_origins: list[str] = Field(default=["*"], description="CORS origins")
    cors_allow_credentials: bool = Field(default=True, description="Allow credentials")
    cors_allow_methods: list[str] = Field(default=["*"], description="Allowed methods")
    cors_allow_headers: list[str] = Field(default=["*"], description="Allowed headers")
    cors_max_age: int = Field(default=600, description="CORS max age")

    # Ledger concurrency
    ledger_conflict_retries: int = Field(
        default=5,
        ge=1,
        description="Attempts to reapply a mutation after a version conflict",
    )
    ledger_lock_timeout_seconds: float = Field(
        default=10.0, description="Redis ledger lock expiry"
    )
    ledger_lock_blocking_timeout_seconds: float = Field(
        default=5.0, description="Max wait for the Redis ledger lock"
    )

    # Certificates
    certificate_id_prefix: str = Field(
        default="SL", description="Prefix of generated certificate ids"
    )
    certificate_id_max_attempts: int = Field(
        default=5, ge=1, description="Id generation attempts before giving up"
    )
    certificate_verify_base_url: str = Field(
        default="http://localhost:3000/verify-certificate",
        description="Public verification page, certificate id is appended",
    )
    certificate_video_threshold: int = Field(
        default=100,
        ge=0,
        le=100,
        description="Watched percent every video needs for eligibility",
    )
    certificate_absent_kinds_satisfied: bool = Field(
        default=False,
        description="Treat item kinds a course does not have as satisfied",
    )
    certificate_course_duration: str = Field(
        default="120 Hours", description="Duration printed on certificates"
    )
    certificate_platform_name: str = Field(
        default="SkillPath", description="Platform name shown on verification"
    )

    # Document renderer
    renderer_url: str | None = Field(
        default=None, description="Document renderer endpoint (POST)"
    )
    renderer_timeout_seconds: float = Field(
        default=30.0, description="Document renderer request timeout"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing"

    @property
    def renderer_configured(self) -> bool:
        """Check if the document renderer is configured."""
        return bool(self.renderer_url)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
