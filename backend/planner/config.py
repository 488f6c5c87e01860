"""Application configuration via environment variables."""
from datetime import timedelta

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from .env or environment."""

    DATABASE_URL: str = "sqlite:///./planner.db"
    CORS_ORIGINS: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    # Links in emails are built as f"{FRONT_END_URL}event/{event_id}"
    FRONT_END_URL: str = "http://localhost:3000/"

    SENDGRID_API_KEY: str = ""
    SENDGRID_VERIFIED_SENDER: str = ""
    SENDGRID_API_URL: str = "https://api.sendgrid.com/v3/mail/send"
    EMAIL_TIMEOUT_SECONDS: float = 10.0

    SCHEDULER_ENABLED: bool = True
    SCHEDULER_PERIOD_SECONDS: int = 24 * 60 * 60
    RETENTION_WARN_DAYS: int = 90
    RETENTION_DELETE_DAYS: int = 7
    REMINDER_TIMEZONE: str = "UTC"  # IANA tz

    CAS_MAX_ATTEMPTS: int = 5

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def retention_warn_after(self) -> timedelta:
        return timedelta(days=self.RETENTION_WARN_DAYS)

    @property
    def retention_delete_after(self) -> timedelta:
        return timedelta(days=self.RETENTION_DELETE_DAYS)

    def event_url(self, event_id: str) -> str:
        return f"{self.FRONT_END_URL}event/{event_id}"


settings = Settings()
