import logging
import os
from dataclasses import dataclass
from typing import Optional, Sequence

from plexbuy.errors import ConfigurationError

logger = logging.getLogger(__name__)

GEMINI_SECRET_FILES = ("/etc/secrets/gemini-api-key", "/var/secrets/gemini-api-key")
MONGODB_SECRET_FILES = ("/etc/secrets/mongodb-uri", "/var/secrets/mongodb-uri")


def read_secret(env_name: str, secret_files: Sequence[str] = ()) -> Optional[str]:
    """Return a secret from the environment, falling back to mounted secret files"""
    value = os.getenv(env_name)
    if value and value.strip():
        return value.strip()

    for path in secret_files:
        try:
            with open(path, 'r') as f:
                value = f.read().strip()
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning(f"Error reading secret file {path}: {e}")
            continue
        if value:
            logger.info(f"{env_name} loaded from {path}")
            return value

    return None


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _float_from_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
LOG_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}


def _log_level_from_env(name: str, default: str) -> str:
    raw = (os.getenv(name) or default).strip().upper()
    level = LOG_LEVEL_ALIASES.get(raw, raw)
    if level not in LOG_LEVELS:
        raise ConfigurationError(f"{name} must be one of {', '.join(LOG_LEVELS)}, got {raw!r}")
    return level


def _bool_from_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    lowered = raw.strip().lower()
    if lowered in {"true", "1", "yes", "on"}:
        return True
    if lowered in {"false", "0", "no", "off"}:
        return False
    raise ConfigurationError(f"{name} must be a boolean-like string, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_timeout: float = 30.0
    mongodb_uri: Optional[str] = None
    mongodb_database: str = "plexbuy"
    mongodb_collection: str = "products"
    mongodb_timeout_ms: int = 5000
    affiliate_tag: str = "plexbuy-21"
    flipkart_affiliate_id: str = "plexbuy"
    max_products: int = 5
    services_enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            gemini_api_key=read_secret("GEMINI_API_KEY", GEMINI_SECRET_FILES),
            gemini_model=os.getenv("GEMINI_MODEL", cls.gemini_model),
            gemini_base_url=os.getenv("GEMINI_BASE_URL", cls.gemini_base_url).rstrip("/"),
            gemini_timeout=_float_from_env("GEMINI_TIMEOUT", cls.gemini_timeout),
            mongodb_uri=read_secret("MONGODB_URI", MONGODB_SECRET_FILES),
            mongodb_database=os.getenv("MONGODB_DATABASE", cls.mongodb_database),
            mongodb_collection=os.getenv("MONGODB_COLLECTION", cls.mongodb_collection),
            mongodb_timeout_ms=_int_from_env("MONGODB_TIMEOUT_MS", cls.mongodb_timeout_ms),
            affiliate_tag=os.getenv("AMAZON_AFFILIATE_TAG", cls.affiliate_tag),
            flipkart_affiliate_id=os.getenv("FLIPKART_AFFILIATE_ID", cls.flipkart_affiliate_id),
            max_products=_int_from_env("MAX_PRODUCTS", cls.max_products),
            services_enabled=_bool_from_env("PLEXBUY_SERVICES_ENABLED", cls.services_enabled),
            host=os.getenv("HOST", cls.host),
            port=_int_from_env("PORT", cls.port),
            log_level=_log_level_from_env("LOG_LEVEL", cls.log_level),
        )

        if settings.max_products < 1:
            raise ConfigurationError(f"MAX_PRODUCTS must be positive, got {settings.max_products}")

        if settings.gemini_api_key:
            logger.info("Gemini API key loaded")
        else:
            logger.warning("No Gemini API key found")
        if not settings.mongodb_uri:
            logger.warning("No MongoDB connection string found")

        return settings
