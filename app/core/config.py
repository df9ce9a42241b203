"""
Application configuration.
Values are read from environment variables / .env file via pydantic-settings.
Trial sweep scheduling is configuration, not code: the hour, minute and
timezone of the daily expiration run can be changed per deployment.
"""
import logging
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    APP_ENV: str = "development"
    DATABASE_URL: str
    JWT_SECRET_KEY: str = ""
    LOG_LEVEL: str = "INFO"

    # Daily trial expiration sweep
    TRIAL_SWEEP_ENABLED: bool = True
    TRIAL_SWEEP_HOUR: int = 3
    TRIAL_SWEEP_MINUTE: int = 0
    TRIAL_SWEEP_TIMEZONE: str = "America/Sao_Paulo"
    TRIAL_EXPIRY_WARNING_DAYS: int = 3

    # Trial activation bounds
    TRIAL_DEFAULT_DURATION_DAYS: int = 7
    TRIAL_MIN_DURATION_DAYS: int = 1
    TRIAL_MAX_DURATION_DAYS: int = 30

    # Seed the plan price catalogue on startup when it is empty
    SEED_PLAN_PRICES: bool = True

    class Config:
        env_file = ".env"


settings = Settings()

# Validate critical security settings
if not settings.JWT_SECRET_KEY:
    raise ValueError(
        "JWT_SECRET_KEY is not set. Set it as an environment variable or in .env. "
        "Generate one with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
    )
