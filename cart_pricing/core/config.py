# cart_pricing/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (SQLAlchemy URL, e.g. postgresql://... or sqlite:///...)
      - JWT_SECRET (secret used by the identity provider to sign access tokens)

    Optional:
      - DB_SSLMODE (appended to Postgres URLs, default "require")
      - LOG_LEVEL (default "INFO")
      - CORS_ORIGINS (JSON list of allowed storefront origins)

    Store-level pricing configuration (delivery tiers, VAT) is NOT here:
    it lives in the store_settings table and is editable at runtime.
    """

    PROJECT_NAME: str = "Cart Pricing API"
    API_V1_STR: str = "/api/v1"

    # DB config
    DATABASE_URL: str
    DB_SSLMODE: str = "require"

    # JWT verification (tokens are issued by the identity provider)
    JWT_SECRET: str
    JWT_ALG: str = "HS256"

    LOG_LEVEL: str = "INFO"
    CURRENCY_SYMBOL: str = "£"

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
