from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_ignore_empty=True,
        extra='ignore',
    )

    # Database
    DATABASE_URL: str = 'sqlite+aiosqlite:///db.sqlite3'
    ECHO_SQL: bool = False
    DB_TIMEOUT_SECONDS: float = 10.0

    # Telegram Bot API
    TELEGRAM_BOT_TOKEN: SecretStr = SecretStr('')
    TELEGRAM_API_URL: str = 'https://api.telegram.org'
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Broadcast
    BROADCAST_CONCURRENCY: int = 10

    LOG_LEVEL: str = 'INFO'


settings = Settings()
