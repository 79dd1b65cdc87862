"""Environment configuration for the outreach automation service."""

import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self) -> None:
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "")
        self.FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

        # Dispatcher
        self.AUTOMATION_ENABLED: bool = _env_bool("AUTOMATION_ENABLED", True)
        self.DISPATCHER_POLL_INTERVAL_SECONDS: float = float(
            os.getenv("DISPATCHER_POLL_INTERVAL_SECONDS", "15")
        )
        self.DISPATCHER_INITIAL_DELAY_SECONDS: float = float(
            os.getenv("DISPATCHER_INITIAL_DELAY_SECONDS", "3")
        )
        self.DISPATCHER_MAX_CONCURRENT: int = int(os.getenv("DISPATCHER_MAX_CONCURRENT", "3"))
        self.DISPATCHER_BATCH_SIZE: int = int(os.getenv("DISPATCHER_BATCH_SIZE", "10"))

        # Retry / backoff
        self.TASK_MAX_RETRIES: int = int(os.getenv("TASK_MAX_RETRIES", "3"))
        self.TASK_RETRY_BASE_DELAY_SECONDS: float = float(
            os.getenv("TASK_RETRY_BASE_DELAY_SECONDS", "30")
        )
        self.TASK_RETRY_JITTER_RATIO: float = float(os.getenv("TASK_RETRY_JITTER_RATIO", "0"))
        # 0 disables the per-task timeout
        self.TASK_TIMEOUT_SECONDS: float = float(os.getenv("TASK_TIMEOUT_SECONDS", "600"))

        # Recurring tasks
        self.RECURRING_SEED_DELAY_SECONDS: float = float(
            os.getenv("RECURRING_SEED_DELAY_SECONDS", "5")
        )

        # Events
        self.EVENT_LOG_ENABLED: bool = _env_bool("EVENT_LOG_ENABLED", True)

        # Outbound transport
        self.MESSAGE_RELAY_URL: str = os.getenv("MESSAGE_RELAY_URL", "")
        self.MESSAGE_RELAY_TIMEOUT_SECONDS: float = float(
            os.getenv("MESSAGE_RELAY_TIMEOUT_SECONDS", "10")
        )

    @property
    def database_url(self) -> str:
        """Database URL with the psycopg v3 driver selected for PostgreSQL."""
        url = self.DATABASE_URL or "sqlite:///./outreach.db"
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+psycopg://", 1)
        return url

    def validate(self) -> None:
        """Validate dispatcher tuning values."""
        if self.DISPATCHER_MAX_CONCURRENT < 1:
            raise ValueError("DISPATCHER_MAX_CONCURRENT must be at least 1")
        if self.DISPATCHER_BATCH_SIZE < 1:
            raise ValueError("DISPATCHER_BATCH_SIZE must be at least 1")
        if self.DISPATCHER_POLL_INTERVAL_SECONDS <= 0:
            raise ValueError("DISPATCHER_POLL_INTERVAL_SECONDS must be positive")
        if self.TASK_MAX_RETRIES < 1:
            raise ValueError("TASK_MAX_RETRIES must be at least 1")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    return settings
