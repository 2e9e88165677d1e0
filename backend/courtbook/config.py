# backend/courtbook/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repository root


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/courtbook.db"
    redis_url: str = "redis://localhost:6379/0"
    log_level: str = "INFO"

    # Published civil calendar: standard offset and the daylight window
    civil_standard_offset_minutes: int = 600
    civil_daylight_start_month: int = 10
    civil_daylight_end_month: int = 4

    status_refresh_enabled: bool = True
    status_refresh_interval_seconds: int = 60

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            # Relative sqlite path is resolved against the repository root
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
