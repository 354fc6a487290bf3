"""HealthyAura client — Configuration via pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Backend
    API_BASE_URL: str = "http://localhost:8080"
    API_TIMEOUT_SECONDS: float = 15.0
    API_MAX_RETRIES: int = 2  # extra attempts for idempotent reads only
    API_RETRY_DELAY_SECONDS: float = 0.5

    # Session persistence
    STORAGE_PATH: str = "~/.healthyaura/session.json"
    TOKEN_STORAGE_KEY: str = "token"
    USER_STORAGE_KEY: str = "healthyaura_user"

    # Login lockout
    LOCKOUT_MAX_ATTEMPTS: int = 3
    LOCKOUT_WINDOW_MINUTES: int = 30

    # Signup policy differs between backend revisions, off unless asked for
    AUTO_SIGN_IN_AFTER_SIGNUP: bool = False

    # Reviews
    REVIEW_MAX_PHOTOS: int = 3

    # Home page recommendations
    RECOMMENDATION_DISPLAY_COUNT: int = 5
    GEOLOCATION_TIMEOUT_SECONDS: float = 10.0

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
