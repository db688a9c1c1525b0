"""Application-wide configuration management using Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration shared by the client, CLI and HTTP layer.

    Every field can be overridden through the environment (upper-case name) or a `.env` file.
    """

    model_config = SettingsConfigDict(env_file=".env", env_nested_delimiter="__", extra="allow")

    environment: str = "development"
    service_name: str = "wedding-card"
    log_level: str = "INFO"

    # Client
    api_base_url: str = "http://localhost:3000"
    max_upload_mb: int = 50

    # Local image cache
    cache_dir: str = "~/.wedding-card"
    cache_db_url: Optional[str] = None  # "disabled" turns the structured store off
    cache_key_prefix: str = "wedding_card_"
    local_storage_quota_bytes: int = 5 * 1024 * 1024

    # HTTP layer
    host: str = "0.0.0.0"
    port: int = 3000
    use_https: bool = True
    ssl_cert_path: str = "certs/server.crt"
    ssl_key_path: str = "certs/server.key"
    public_base_url: str = "http://localhost:3000"

    # Optimizer
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash-image"
    optimized_max_dimension: int = 1024
    style_catalog_path: Optional[str] = None

    # Uploads
    enable_upload_image: bool = False
    upload_queue_dir: str = "storage/queue"

    @property
    def cache_path(self) -> Path:
        return Path(self.cache_dir).expanduser()

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    def resolved_cache_db_url(self, cache_dir: Optional[Path] = None) -> Optional[str]:
        """Structured store URL, or None when the structured store is switched off."""

        if self.cache_db_url == "disabled":
            return None
        if self.cache_db_url:
            return self.cache_db_url
        directory = cache_dir if cache_dir is not None else self.cache_path
        return f"sqlite+aiosqlite:///{directory / 'WeddingCardDB.sqlite'}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache configuration for the current process."""

    return Settings()  # type: ignore[arg-type]


settings = get_settings()
