"""
Configuration module for the media upload pipeline
Contains logger setup, environment variables and the typed settings object
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


# -------------------------
# Logger Setup
# -------------------------
def setup_logger(
    name: str = __name__, log_file: Optional[str] = None
) -> logging.Logger:
    """
    Set up and return a logger with a console handler and an optional file handler

    Args:
        name: Logger name (usually __name__)
        log_file: Optional path to a log file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)

    # Avoid adding duplicate handlers
    if logger.handlers:
        return logger

    # Create formatter
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


# -------------------------
# Environment Variables
# -------------------------
LOG_FILE = os.getenv("UPLOAD_LOG_FILE")

# supabase
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")

# Create the main application logger
logger = setup_logger("pizzeria_media", LOG_FILE)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric value for {name}: {raw!r}")
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, float(default)))


@dataclass(frozen=True)
class RetryOptions:
    """Backoff parameters shared by every retried storage or catalog call."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1`` (``attempt`` is zero based)."""
        return min(
            self.base_delay * (self.backoff_multiplier**attempt), self.max_delay
        )

    def with_max_retries(self, max_retries: Optional[int]) -> "RetryOptions":
        if max_retries is None:
            return self
        return RetryOptions(
            max_retries=max(0, max_retries),
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            backoff_multiplier=self.backoff_multiplier,
        )


@dataclass(frozen=True)
class Settings:
    """Explicit settings for one pipeline instance.

    Every field has a documented default so a ``Settings()`` built in tests
    needs no environment at all.
    """

    supabase_url: Optional[str] = None
    # Service key preferred: uploads write to storage and catalog tables.
    supabase_key: Optional[str] = None
    # Seconds allowed for each storage or catalog call.
    operation_timeout: float = 30.0
    # Seconds a bucket confirmed to exist is trusted without another lookup.
    bucket_cache_ttl: float = 60.0
    default_catalog_table: str = "gallery_images"
    retry: RetryOptions = field(default_factory=RetryOptions)

    @classmethod
    def from_env(cls) -> "Settings":
        retry = RetryOptions(
            max_retries=_env_int("UPLOAD_MAX_RETRIES", 3),
            base_delay=_env_float("UPLOAD_BASE_DELAY", 1.0),
            max_delay=_env_float("UPLOAD_MAX_DELAY", 10.0),
        )
        return cls(
            supabase_url=SUPABASE_URL,
            supabase_key=SUPABASE_SERVICE_KEY or SUPABASE_KEY,
            operation_timeout=_env_float("UPLOAD_OPERATION_TIMEOUT", 30.0),
            bucket_cache_ttl=_env_float("UPLOAD_BUCKET_CACHE_TTL", 60.0),
            default_catalog_table=os.getenv("UPLOAD_CATALOG_TABLE")
            or "gallery_images",
            retry=retry,
        )


# Log configuration status
logger.debug(f"SUPABASE_URL configured: {bool(SUPABASE_URL)}")
logger.debug(f"SUPABASE_KEY configured: {bool(SUPABASE_KEY)}")
logger.debug(f"SUPABASE_SERVICE_KEY configured: {bool(SUPABASE_SERVICE_KEY)}")
