"""DEADMAN Configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the DEADMAN service."""

    model_config = SettingsConfigDict(env_prefix="DEADMAN_")

    # Scanner
    scan_interval_seconds: int = 60
    shutdown_grace_seconds: float = 30.0

    # Notifications
    delivery_timeout_seconds: float = 10.0
    http_timeout_seconds: float = 30.0

    # Group seeded on startup for the default owner
    default_group_name: str = "Default"
    default_owner_id: str = "default"

    # Storage (None keeps everything in memory)
    store_path: Path | None = None

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # API
    api_prefix: str = "/api/v1"
    title: str = "DEADMAN API"
    description: str = "Dead-man's-switch heartbeat monitoring and alerting"
    version: str = "0.1.0"


settings = Settings()
