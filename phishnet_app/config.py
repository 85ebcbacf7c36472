from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


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
    app_name: str = "PhishNet"
    app_version: str = "1.0.0"

    # Server
    host: str = "127.0.0.1"
    port: int = 3000
    cors_origins: List[str] = ["*"]

    # Database
    database_url: str = "sqlite:///./phishnet.db"

    # Authentication
    jwt_secret: str = "your_jwt_secret_key_here"
    jwt_algorithm: str = "HS256"
    jwt_expiry_days: int = 7
    bcrypt_rounds: int = 10
    max_login_attempts: int = 5
    account_lock_minutes: int = 30

    # Rate limiting (per client IP, fixed window)
    rate_limit_enabled: bool = True
    rate_limit_window_seconds: int = 900
    rate_limit_max_requests: int = 100

    # Data retention
    history_retention_days: int = 365  # Scan records expire after one year
    daily_stats_retention_days: int = 90
    top_domains_limit: int = 50

    # Cache settings
    cache_backend: str = "redis"  # Options: "redis", "memory", "null"
    redis_url: str = "redis://localhost:6379/0"
    blog_cache_ttl: int = 900  # Aggregated feeds are cached for 15 minutes

    # Queue settings
    queue_backend: str = "redis_streams"  # Options: "redis_streams", "memory"
    queue_name: str = "analytics_events"
    queue_consumer_group: str = "analytics_workers"
    queue_batch_size: int = 100  # Number of messages to process at once
    queue_worker_interval: float = 5  # Worker poll interval in seconds
    analytics_worker_in_process: bool = True  # Run the worker inside the API when the queue is in-memory
    purge_interval: int = 3600  # Expired history cleanup interval in seconds

    # Blog (RSS) settings
    rss_feed_hackers_news: str = "https://feeds.feedburner.com/TheHackersNews"
    rss_feed_bleeping_computer: str = "https://www.bleepingcomputer.com/feed/"
    rss_timeout: float = 30.0
    rss_max_retries: int = 3

    # Chatbot
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_timeout: float = 20.0

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
