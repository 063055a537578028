import logging
from functools import lru_cache

from pydantic import ValidationError
from pydantic_settings import BaseSettings

from fleetkeeper.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # Data service (required)
    DATABASE_URL: str
    SECRET_KEY: str

    # Database pool
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Auth session
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    SESSION_COOKIE_NAME: str = "fleetkeeper_session"
    SESSION_COOKIE_SECURE: bool = False
    SESSION_INIT_TIMEOUT_SECONDS: float = 3.0

    # Auth form throttling
    AUTH_RATE_LIMIT_PER_MINUTE: int = 20
    AUTH_RATE_LIMIT_PER_HOUR: int = 200

    # Dashboard maintenance heuristics
    MAINTENANCE_INTERVAL_DAYS: int = 90
    MAINTENANCE_STALE_DAYS: int = 30
    UPCOMING_WINDOW_DAYS: int = 30

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


def load_settings(**overrides) -> Settings:
    """Build settings from the environment, failing loudly on missing values."""
    try:
        return Settings(**overrides)
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        message = f"Missing or invalid configuration: {', '.join(missing)}. Check your .env file."
        logger.critical(message)
        raise ConfigurationError(message) from e


@lru_cache()
def get_settings() -> Settings:
    return load_settings()
