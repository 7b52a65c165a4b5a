"""
Server settings: read from NICKCHAT_* environment variables or .env.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_TYPES = [
    # images
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    # audio
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/ogg",
    "audio/webm",
    # documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
    "application/zip",
    "application/x-zip-compressed",
]


class Settings(BaseSettings):
    # Server
    host: str = "0.0.0.0"
    port: int = 3001
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])
    debug: bool = False
    log_level: str = "INFO"

    # Socket.IO heartbeat (seconds)
    ping_interval: float = 25.0
    ping_timeout: float = 60.0

    # Storage; no URL means in-memory stores
    mongodb_url: Optional[str] = None
    database_name: str = "nickchat"
    store_timeout: float = 5.0

    # History
    history_default_limit: int = 100
    history_max_limit: int = 500

    # Uploads
    upload_dir: str = "uploads"
    upload_max_bytes: int = 10 * 1024 * 1024
    upload_allowed_types: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_TYPES))

    model_config = SettingsConfigDict(
        env_prefix="NICKCHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
