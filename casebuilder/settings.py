"""Application configuration management."""

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv


ATTACHMENT_POLICIES = ("stop", "fallback_to_step")


@dataclass
class Settings:
    """Application settings loaded from environment."""

    # App
    app_name: str = "Case Builder"
    app_version: str = "0.1.0"
    environment: str = "development"  # development, staging, production, test

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Persistence collaborator
    persistence_base_url: str = "http://localhost:3000"
    persistence_timeout_s: float = 10.0
    use_memory_persistence: bool = False

    # Attachment resolution
    attachment_poll_interval_ms: int = 150
    attachment_max_attempts: int = 25
    attachment_exhausted_policy: str = "stop"  # stop or fallback_to_step

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    def __post_init__(self):
        """Validate settings after initialization."""
        if self.attachment_poll_interval_ms < 0:
            raise ValueError("ATTACHMENT_POLL_INTERVAL_MS must not be negative")
        if self.attachment_max_attempts < 0:
            raise ValueError("ATTACHMENT_MAX_ATTEMPTS must not be negative")
        if self.attachment_exhausted_policy not in ATTACHMENT_POLICIES:
            raise ValueError(
                f"ATTACHMENT_EXHAUSTED_POLICY must be one of {', '.join(ATTACHMENT_POLICIES)}"
            )
        if self.log_format not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
        if self.persistence_timeout_s <= 0:
            raise ValueError("PERSISTENCE_TIMEOUT_S must be positive")

    @property
    def attachment_poll_interval_s(self) -> float:
        return self.attachment_poll_interval_ms / 1000.0

    @property
    def fallback_to_step(self) -> bool:
        return self.attachment_exhausted_policy == "fallback_to_step"

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


def load_settings_from_env() -> Settings:
    """Load settings from environment variables (and a .env file if present)."""
    load_dotenv()

    def get_bool(key: str, default: bool = False) -> bool:
        value = os.getenv(key, str(default)).lower()
        return value in ("true", "1", "yes")

    def get_int(key: str, default: int) -> int:
        return int(os.getenv(key, str(default)))

    def get_float(key: str, default: float) -> float:
        return float(os.getenv(key, str(default)))

    return Settings(
        # App
        app_name=os.getenv("APP_NAME", "Case Builder"),
        app_version=os.getenv("APP_VERSION", "0.1.0"),
        environment=os.getenv("ENVIRONMENT", "development"),

        # Server
        host=os.getenv("HOST", "0.0.0.0"),
        port=get_int("PORT", 8000),

        # Persistence collaborator
        persistence_base_url=os.getenv("PERSISTENCE_BASE_URL", "http://localhost:3000"),
        persistence_timeout_s=get_float("PERSISTENCE_TIMEOUT_S", 10.0),
        use_memory_persistence=get_bool("USE_MEMORY_PERSISTENCE", False),

        # Attachment resolution
        attachment_poll_interval_ms=get_int("ATTACHMENT_POLL_INTERVAL_MS", 150),
        attachment_max_attempts=get_int("ATTACHMENT_MAX_ATTEMPTS", 25),
        attachment_exhausted_policy=os.getenv("ATTACHMENT_EXHAUSTED_POLICY", "stop"),

        # Logging
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_format=os.getenv("LOG_FORMAT", "json"),
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings_from_env()
