"""Application settings module.

Provides centralized configuration using environment variables with sane defaults.
Currency is a display label only; `DEFAULT_CURRENCY` is applied when a payload omits it.
"""
from __future__ import annotations

from functools import lru_cache
import os

from pydantic import BaseModel


class Settings(BaseModel):
    # Invoice domain defaults
    DEFAULT_CURRENCY: str = "USD"
    BRAND_NAME: str = "SWIFT INVOICE"
    ALLOW_GUEST_INVOICES: bool = False

    # PDF rendering
    PDF_PAGE_SIZE: str = "A4"
    PDF_MARGIN: str = "20px"

    # Auth / security
    JWT_SECRET: str = "dev-insecure-secret-change"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    BCRYPT_ROUNDS: int = 12

    # Observability toggles
    ENABLE_TRACING: bool = False

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from environment with type coercion and defaults."""
        def _get_int(name: str, default: int) -> int:
            raw = os.getenv(name)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError:
                return default

        def _get_bool(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.lower() in {"1", "true", "yes", "on"}

        testing = _get_bool("TESTING", False)
        return cls(
            DEFAULT_CURRENCY=os.getenv("DEFAULT_CURRENCY", "USD").upper(),
            BRAND_NAME=os.getenv("BRAND_NAME", "SWIFT INVOICE"),
            ALLOW_GUEST_INVOICES=_get_bool("ALLOW_GUEST_INVOICES", False),
            PDF_PAGE_SIZE=os.getenv("PDF_PAGE_SIZE", "A4"),
            PDF_MARGIN=os.getenv("PDF_MARGIN", "20px"),
            JWT_SECRET=os.getenv("JWT_SECRET", "dev-insecure-secret-change"),
            JWT_ALGORITHM=os.getenv("JWT_ALGORITHM", "HS256"),
            ACCESS_TOKEN_EXPIRE_MINUTES=_get_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24),
            # Reduced rounds keep test hashing fast; never used for real credentials
            BCRYPT_ROUNDS=_get_int("BCRYPT_ROUNDS", 4 if testing else 12),
            ENABLE_TRACING=_get_bool("ENABLE_TRACING", False),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached Settings instance (singleton pattern)."""
    return Settings.load()


def get_default_currency() -> str:
    return get_settings().DEFAULT_CURRENCY


__all__ = ["Settings", "get_settings", "get_default_currency"]
