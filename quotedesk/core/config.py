from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # App
    app_name: str = "QuoteDesk"
    debug: bool = False
    environment: str = "development"

    # Public URL used in notification links
    app_base_url: str = "http://localhost:3000"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def approval_url(self, case_key: str) -> str:
        return f"{self.app_base_url.rstrip('/')}/cases/approval/{case_key}"

    # Database
    database_url: str = "sqlite:///./quotedesk.db"

    # Logging
    log_level: str = "INFO"
    log_dir: str = "./logs"
    file_logging: bool = False

    # Notifications
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from_email: str = "no-reply@quotedesk.local"
    smtp_from_name: str = "QuoteDesk Approval"
    smtp_use_tls: bool = True
    smtp_timeout: int = 30

    # Outside production, all email goes here instead of the real recipient
    dev_email_to: Optional[str] = None

    # Webhooks
    webhook_timeout: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="QUOTEDESK_",
        case_sensitive=False,
        extra="ignore"  # Allow extra env vars without raising validation errors
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
