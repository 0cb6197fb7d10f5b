# app/core/config.py

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Values come from the process environment (Docker Compose passes the root .env).
    model_config = SettingsConfigDict(extra="ignore")

    # The environment mode: 'local' or 'prod'
    ENV: str = "local"

    # --- Database URLs ---
    DATABASE_URL_PROD: str
    DATABASE_URL_LOCAL: str

    # Shared with the auth service that mints bearer tokens
    JWT_SECRET: str

    # --- Stripe ---
    STRIPE_SECRET_KEY: str = ""
    STRIPE_PUBLISHABLE_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_API_VERSION: str = "2023-10-16"
    STRIPE_MAX_NETWORK_RETRIES: int = 2
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300

    # --- Registration & payment ---
    GUEST_TOKEN_TTL_MINUTES: int = 60

    RATE_LIMIT_ENABLED: bool = True
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    LOG_LEVEL: str = "INFO"

    # --- Dynamic Properties ---
    @property
    def DATABASE_URL(self) -> str:
        return (
            self.DATABASE_URL_LOCAL if self.ENV == "local" else self.DATABASE_URL_PROD
        )


# Create a single instance of the settings
settings = Settings()
