"""Application settings and configuration.

This module defines all configuration options for the Murmur Stage application.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Murmur Stage", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration
    database_url: str = Field(default="sqlite:///./murmur.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis configuration for the revoked-token blacklist
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    token_blacklist_prefix: str = Field(default="revoked", alias="TOKEN_BLACKLIST_PREFIX")

    # JWT authentication settings
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Feed pagination
    feed_default_limit: int = Field(default=20, alias="FEED_DEFAULT_LIMIT")
    feed_max_limit: int = Field(default=100, alias="FEED_MAX_LIMIT")
    # False keeps malformed cursors lenient (first page); True rejects them.
    feed_strict_cursor: bool = Field(default=False, alias="FEED_STRICT_CURSOR")

    # Content limits
    post_max_length: int = Field(default=2000, alias="POST_MAX_LENGTH")
    comment_max_length: int = Field(default=1000, alias="COMMENT_MAX_LENGTH")
    retweet_comment_max_length: int = Field(default=280, alias="RETWEET_COMMENT_MAX_LENGTH")
    location_max_length: int = Field(default=100, alias="LOCATION_MAX_LENGTH")
    poll_max_options: int = Field(default=10, alias="POLL_MAX_OPTIONS")

    # Search, trends and notifications
    search_max_limit: int = Field(default=100, alias="SEARCH_MAX_LIMIT")
    trending_max_limit: int = Field(default=50, alias="TRENDING_MAX_LIMIT")
    trending_max_hours: int = Field(default=168, alias="TRENDING_MAX_HOURS")
    notifications_page_size: int = Field(default=50, alias="NOTIFICATIONS_PAGE_SIZE")

    # Realtime side channel
    realtime_queue_size: int = Field(default=1000, alias="REALTIME_QUEUE_SIZE")

    # Media storage (S3)
    aws_access_key_id: str | None = Field(default=None, alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str | None = Field(default=None, alias="AWS_SECRET_ACCESS_KEY")
    aws_s3_region: str | None = Field(default=None, alias="AWS_S3_REGION")
    aws_s3_bucket: str | None = Field(default=None, alias="AWS_S3_BUCKET")
    aws_s3_public_url: str | None = Field(default=None, alias="AWS_S3_PUBLIC_URL")
    media_max_bytes: int = Field(default=10 * 1024 * 1024, alias="MEDIA_MAX_BYTES")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()  # type: ignore[call-arg]
