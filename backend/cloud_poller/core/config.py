from pathlib import Path

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

ENV_FILE = Path(__file__).resolve().parents[3] / ".env"
load_dotenv(dotenv_path=ENV_FILE)


class Settings(BaseSettings):
    # Shared bearer secret for /api/* routes. Empty disables the check.
    POLLER_API_TOKEN: str = ""

    # Application DB (key-value snapshot store)
    APP_DATABASE_URL: str = "sqlite:///./cloud_poller.db"

    # Scheduling
    POLL_INTERVAL_SECONDS: int = 60
    POLL_CONCURRENCY: int = 4
    POLL_TIMEOUT_SECONDS: float = 30.0
    NOTIFY_TIMEOUT_SECONDS: float = 10.0

    # Provider metering APIs
    OPENAI_API_BASE: str = "https://api.openai.com"
    ANTHROPIC_API_BASE: str = "https://api.anthropic.com"
    ANTHROPIC_API_VERSION: str = "2023-06-01"
    OPENROUTER_API_BASE: str = "https://openrouter.ai"

    # Push channels
    FCM_SERVER_KEY: str = ""
    FCM_API_URL: str = "https://fcm.googleapis.com/fcm/send"
    APNS_AUTH_TOKEN: str = ""
    APNS_TOPIC: str = ""
    APNS_API_URL: str = "https://api.push.apple.com"

    LOG_LEVEL: str = "INFO"

    @staticmethod
    def _is_placeholder_database_url(value: str) -> bool:
        normalized = value.lower()
        placeholder_tokens = (
            "project-ref",
            "your-db-password",
        )
        return any(token in normalized for token in placeholder_tokens)

    @property
    def app_database_url(self) -> str:
        configured_url = (self.APP_DATABASE_URL or "").strip()
        if not configured_url:
            raise ValueError("Database configuration is missing. Set APP_DATABASE_URL.")
        if self._is_placeholder_database_url(configured_url):
            raise ValueError(
                "APP_DATABASE_URL still contains placeholder values. "
                "Set a real APP_DATABASE_URL."
            )
        return configured_url

    @property
    def poll_concurrency(self) -> int:
        return max(1, int(self.POLL_CONCURRENCY or 1))

    class Config:
        env_file = str(ENV_FILE)
        extra = "ignore"


settings = Settings()
