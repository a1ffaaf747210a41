from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Application
    app_name: str = "Traytic API"
    app_version: str = "1.0.0"

    # Server
    host: str = "0.0.0.0"
    port: int = 3001

    # Transactional database (sites, org membership)
    database_url: str = "sqlite:///./traytic.db"

    # Collection
    max_events_per_request: int = 100
    max_body_bytes: int = 1_048_576  # Larger collect bodies are dropped unread
    placeholder_host: str = "x.com"  # Used when an event URL is a bare path
    extra_bot_patterns: List[str] = []

    # Rate limiting (fixed window, per site, per process)
    rate_limit_max: int = 200
    rate_limit_window_seconds: int = 60
    rate_limit_sweep_seconds: int = 300

    # Cache settings (site-by-domain lookups)
    cache_backend: str = "redis"  # Options: "redis", "memory", "null"
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl: int = 300
    cache_unknown_ttl: int = 60  # Unknown domains, shorter so new sites show up quickly
    cache_max_entries: int = 10000  # In-memory backend only

    # Insert queue settings
    insert_queue_max_batches: int = 10000  # Batches beyond this are dropped
    insert_batch_size: int = 500  # Rows per store insert
    insert_flush_interval: float = 1.0  # Worker poll interval in seconds
    insert_worker_enabled: bool = True

    # Analytics store settings
    store_backend: str = "sqlite"  # Options: "sqlite", "clickhouse"
    store_sqlite_path: str = "analytics.db"
    store_timeout: float = 5.0  # Seconds before an insert/query is abandoned
    clickhouse_url: str = "http://localhost:8123"
    clickhouse_database: str = "traytic"
    clickhouse_user: str = "traytic"
    clickhouse_password: str = "traytic_secret"
    clickhouse_pool_size: int = 10

    # Live stream settings
    stream_heartbeat_seconds: float = 15.0
    stream_subscriber_queue_size: int = 100

    # External auth provider
    auth_url: str = "http://localhost:3000"
    auth_session_path: str = "/api/auth/get-session"
    auth_timeout: float = 3.0

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
