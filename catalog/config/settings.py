"""
Catalog Settings

Centralized configuration for the catalog core.
All settings are loaded from environment variables.
"""
import os

from dotenv import load_dotenv

load_dotenv()


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


def get_int_env(key: str, default: int) -> int:
    """Get an integer value from environment variable."""
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


def get_float_env(key: str, default: float) -> float:
    """Get a float value from environment variable."""
    try:
        return float(os.getenv(key, str(default)))
    except ValueError:
        return default


class Settings:
    """
    Settings for the catalog core.

    To add a new setting:
    1. Add it here as a class attribute
    2. Load it from an environment variable
    3. Read it through `settings.<NAME>`
    """

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./catalog.db")
    SQL_ECHO: bool = get_bool_env("SQL_ECHO", False)
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Store calls that exceed this surface as StoreUnavailableError
    STORE_TIMEOUT_SECONDS: float = get_float_env("CATALOG_STORE_TIMEOUT_SECONDS", 10.0)

    # Trending score
    TRENDING_STALENESS_HOURS: float = get_float_env("TRENDING_STALENESS_HOURS", 6.0)
    TRENDING_RECENT_WINDOW_DAYS: int = get_int_env("TRENDING_RECENT_WINDOW_DAYS", 30)

    # Pagination
    DEFAULT_PAGE_SIZE: int = get_int_env("CATALOG_DEFAULT_PAGE_SIZE", 10)
    MAX_PAGE_SIZE: int = get_int_env("CATALOG_MAX_PAGE_SIZE", 100)

    # Offline enrollment status refresh
    ENROLLMENT_REFRESH_INTERVAL_SECONDS: int = get_int_env("ENROLLMENT_REFRESH_INTERVAL_SECONDS", 3600)

    @classmethod
    def as_dict(cls) -> dict:
        """Get all settings as a dictionary (DATABASE_URL excluded)."""
        return {
            key: getattr(cls, key)
            for key in dir(cls)
            if key.isupper() and key != "DATABASE_URL"
        }


settings = Settings()
