"""
packstore Configuration Management

Uses Pydantic Settings for type-safe configuration from environment variables.
Settings are read once at startup and are immutable afterwards.
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # =========================================================================
    # APPLICATION
    # =========================================================================
    APP_NAME: str = "packstore"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "info"
    LOG_FORMAT: str = "auto"  # auto | json | console
    VERSION: str = "0.1.0"

    # =========================================================================
    # PERSISTENCE (document store)
    # =========================================================================
    DATABASE_URL: str = "sqlite:///packstore.db"

    # =========================================================================
    # BROADCAST (proxy relay)
    # =========================================================================
    BROADCAST_BACKEND: str = "memory"  # memory | nats
    NATS_URL: str = "nats://localhost:4222"
    NATS_MAX_RECONNECT_ATTEMPTS: int = 60
    PROXY_SUBJECT: str = "packstore.proxy"
    PROXY_TIMEOUT_SECONDS: float = 6.0

    # =========================================================================
    # ENTRY STORAGE
    # =========================================================================
    FLAG_SCOPE: str = "data-storage"
    LOCATOR_SCHEME: str = "compendium"
    DEFAULT_PACK: str = "world.data-storage"
    DEFAULT_PACK_LABEL: str = "Data Storage"
    WORKING_PACK: str = "world.data-storage"
    META_INDEX_ID: str = "DataStorageMetaD"
    META_DOCUMENT_NAME: str = "!!! METADATA: DO NOT DELETE !!!"
    DEFAULT_THUMB: str = "icons/svg/book.svg"
    MANAGED_DOCUMENT_KINDS: List[str] = ["JournalEntry"]

    # =========================================================================
    # ACCESS
    # =========================================================================
    ALLOW_UNPRIVILEGED_WRITES: bool = True

    # =========================================================================
    # WORKER (privileged proxy responder)
    # =========================================================================
    WORKER_ACTOR_ID: str = "packstore-worker"
    WORKER_ACTOR_NAME: str = "Proxy Worker"
    WORKER_ACTOR_ROLE: int = 4  # Role.OWNER


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Singleton instance for easy import
settings = get_settings()
