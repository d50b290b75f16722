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
    app_name: str = Field(default="blog-comments", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment name"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")

    # Authentication (tokens are issued upstream, only verified here)
    auth_secret_key: str = Field(
        default="dev-jwt-secret-key-change-in-production-32chars!",
        description="JWT verification key (min 32 chars)",
    )
    auth_algorithm: str = Field(default="HS256", description="JWT algorithm")
    auth_access_token_expire_minutes: int = Field(
        default=15, description="Access token expiration (minutes)"
    )

    # Storage
    storage_backend: Literal["cassandra", "memory"] = Field(
        default="cassandra",
        description="Comment storage backend (memory is for development and tests)",
    )

    # Redis
    redis_enabled: bool = Field(default=True, description="Connect to Redis")
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
        default="blog_comments", description="Cassandra keyspace"
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
    log_file_enabled: bool = Field(default=True, description="Write rotating log files")
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

    # Comments
    comments_max_depth: int = Field(
        default=5, ge=0, description="Deepest reply level allowed (root is 0)"
    )
    comments_redaction_marker: str = Field(
        default="[Comentario eliminado]",
        description="Content left behind when a comment with replies is deleted",
    )
    comments_page_size_max: int = Field(
        default=100, description="Maximum page size for comment listings"
    )
    comment_mutation_retries: int = Field(
        default=5,
        ge=1,
        description="Attempts for a conditional comment update before giving up",
    )

    # Moderation
    moderation_approve_threshold: int = Field(
        default=70,
        ge=0,
        le=100,
        description="Minimum moderation score for automatic approval",
    )
    moderation_spam_confidence_threshold: float = Field(
        default=0.75,
        ge=0.0,
        le=1.0,
        description="Spam flag confidence that forces the spam status",
    )
    moderation_min_length: int = Field(default=2, description="Minimum content length")
    moderation_max_length: int = Field(
        default=5000, description="Maximum content length"
    )
    moderation_max_links: int = Field(
        default=2, description="Links allowed before the comment is penalised"
    )
    reanalyze_default_limit: int = Field(
        default=100, description="Default batch size for re-analysis"
    )
    reanalyze_max_batch: int = Field(
        default=500, description="Upper bound for a single re-analysis batch"
    )
    bulk_moderation_max_items: int = Field(
        default=100, description="Maximum comment ids per bulk request"
    )
    bulk_moderation_concurrency: int = Field(
        default=5, ge=1, description="Bulk transitions processed in parallel"
    )

    # Notifications
    notifications_enabled: bool = Field(
        default=False, description="Enable lifecycle notifications"
    )
    notification_timeout_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Per-recipient delivery timeout (shorter than request timeout)",
    )
    moderator_emails: list[str] = Field(
        default_factory=list, description="Recipients for moderation alerts"
    )
    site_url: str = Field(
        default="http://localhost:3000", description="Public site URL for links"
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


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
