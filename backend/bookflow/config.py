# backend/bookflow/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # project root


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/bookflow.db"
    redis_url: str = "redis://localhost:6379/0"

    log_level: str = "INFO"

    # Unpaid pending bookings hold their slot this long
    pending_ttl_minutes: int = 15
    expiry_check_interval_seconds: int = 60
    events_enabled: bool = True

    # Booking rules for businesses created without explicit values
    default_slot_interval_minutes: int = 30
    default_min_notice_hours: int = 1
    default_advance_days: int = 30

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_prefix="BOOKFLOW_",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            # Relative SQLite path -> absolute, anchored at the project root
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
