"""Configuration management using Pydantic Settings"""

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Storage
    database_url: Optional[str] = None  # unset: in-process store only
    storage_reconnect_interval_seconds: float = 30.0
    fallback_data_file: Optional[str] = None  # JSON snapshot of the in-process store

    # Service
    service_name: str = "loan-tracker"
    log_level: str = "INFO"
    cors_allow_origins: List[str] = ["*"]


settings = Settings()
