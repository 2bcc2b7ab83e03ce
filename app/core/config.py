from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Auth
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Database
    DATABASE_URL: str

    # Scheduling
    EDIT_LOCK_TTL_SECONDS: int = 120
    HOURS_EPSILON: float = 0.05
    STANDARD_WORKING_DAYS: List[int] = [0, 1, 2, 3, 4]  # Mon-Fri
    HOLIDAY_COUNTRY_CODE: str = "DE"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )


settings = Settings()
