from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite+aiosqlite:///./workstation.db"
    database_echo: bool = False

    # App Settings
    debug: bool = False
    secret_key: str = "change-me"
    session_cookie_name: str = "workstation_session"
    currency: str = "NGN"

    # Subscriptions
    reactivation_grace_days: int = 7
    strict_plan_tiers: bool = False
    scheduler_enabled: bool = True
    scheduler_interval_seconds: int = 3600

    # Telegram Bot (notifications are skipped without a token)
    telegram_bot_token: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
