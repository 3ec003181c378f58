from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


class Settings(BaseSettings):
    APP_NAME: str = "Ledgerly Backend"
    ENV: str = "dev"

    # Default SQLite file next to the backend package; absolute so the CWD does not matter
    _default_db_path = Path(__file__).resolve().parents[2] / "ledgerly.sqlite3"
    DATABASE_URL: str = f"sqlite:///{_default_db_path}"

    # Public API key checked on every /api request when set
    API_KEY: str | None = None

    CORS_ORIGINS: list[str] = ["*"]
    TIMEZONE: str = "UTC"
    DEFAULT_CURRENCY: str = "USD"

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    model_config = SettingsConfigDict(env_file=(".env",), env_prefix="LEDGERLY_", case_sensitive=False)


settings = Settings()
