from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Application info (echoed by /api/health, never computed)
    app_name: str = "User Admin"
    app_env: str = "production"
    app_debug: bool = False
    app_version: str = "1.0.0"

    # Health probes
    database_path: str = "data/app.db"
    cache_url: str = "memory://"  # memory:// | redis://host:port/db
    health_probe_timeout: float = 5.0  # seconds per probe
    health_cache_key: str = "__health_check__"  # must not collide with app keys
    health_cache_ttl: int = 1  # seconds

    # Listing source (the users endpoint)
    api_base_url: str = "http://localhost:8000"
    listing_path: str = "/api/users"
    listing_token: str = ""
    fetch_timeout: float = 10.0

    # Refresh / staleness
    auto_refresh_enabled: bool = False
    auto_refresh_interval: int = 300  # seconds
    stale_after_ms: int = 300_000  # 5 minutes
    recent_users_limit: int = 5
    max_retry_attempts: int = 3  # transport attempts per refresh
    retry_backoff: float = 0.5  # seconds, multiplied by attempt number

    # Notifications
    notifications_enabled: bool = True
    notification_duration: int = 5  # seconds a notification stays visible
    discord_webhook_url: str = ""  # optional forwarding of error notifications

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"

    @property
    def app_info(self) -> dict[str, object]:
        return {
            "name": self.app_name,
            "environment": self.app_env,
            "debug": self.app_debug,
            "version": self.app_version,
        }


settings = Settings()
