"""Application configuration loaded from the environment"""
import os
import logging
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Searches the current dir and its parents for a .env file
load_dotenv()


def resolve_timezone(name: Optional[str]) -> Optional[tzinfo]:
    """
    Returns the named IANA zone. None stands for the server's local zone, whose
    DST rules are then applied per instant by the mapper.
    """
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown APP_TIMEZONE '{name}', using the server's local time zone.")
        return None


def _split_origins(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass
class Settings:
    mongodb_uri: str = "mongodb://localhost:27017"
    db_name: str = "expense_tracker"
    collection_name: str = "expenses"
    timezone: Optional[tzinfo] = None
    cors_allowed_origins: List[str] = field(default_factory=list)
    rate_limit: str = "100/minute"
    static_dir: str = "public"
    mongodb_timeout_ms: int = 5000
    log_level: str = "INFO"

    @property
    def cors_origins(self) -> List[str]:
        # Development mode allows every origin
        return self.cors_allowed_origins or ["*"]

    @property
    def cors_allow_credentials(self) -> bool:
        return bool(self.cors_allowed_origins)


def load_settings() -> Settings:
    """Builds Settings from environment variables (and .env)."""
    timeout_raw = os.getenv("MONGODB_TIMEOUT_MS", "5000")
    try:
        timeout_ms = int(timeout_raw)
    except ValueError:
        logger.warning(f"Invalid MONGODB_TIMEOUT_MS '{timeout_raw}', using 5000.")
        timeout_ms = 5000

    return Settings(
        mongodb_uri=os.getenv("MONGODB_URI", "mongodb://localhost:27017"),
        db_name=os.getenv("DB_NAME", "expense_tracker"),
        collection_name=os.getenv("EXPENSES_COLLECTION", "expenses"),
        timezone=resolve_timezone(os.getenv("APP_TIMEZONE")),
        cors_allowed_origins=_split_origins(os.getenv("CORS_ALLOWED_ORIGINS")),
        rate_limit=os.getenv("RATE_LIMIT", "100/minute"),
        static_dir=os.getenv("STATIC_DIR", "public"),
        mongodb_timeout_ms=timeout_ms,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
