from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "rewards-ledger"
    SECRET_KEY: str = "a_very_secret_key"
    DATABASE_URL: str = "sqlite:///rewards.db"
    SQL_ECHO: bool = False
    LOG_LEVEL: str = "INFO"

    # Redemption retries for transient store failures (lock timeouts, dropped connections)
    REDEMPTION_MAX_ATTEMPTS: int = 3
    RETRY_BACKOFF_SECONDS: float = 0.05
    SQLITE_BUSY_TIMEOUT_SECONDS: float = 30.0

    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100
    LEADERBOARD_SIZE: int = 10
    FEATURED_REWARDS_SIZE: int = 5

settings = Settings()
