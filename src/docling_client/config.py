"""
Configuration management for the Docling client.
"""

import logging
import os
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_BASE_URL = "http://127.0.0.1:5001"


class ClientSettings(BaseSettings):
    """Client settings read from ``DOCLING_*`` environment variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DOCLING_",
        case_sensitive=False,
        validate_assignment=True,
        extra="ignore",
    )

    base_url: str = Field(DEFAULT_BASE_URL, description="Docling service base URL")
    api_key: Optional[str] = Field(None, description="Value sent as X-Api-Key")
    timeout_seconds: float = Field(600.0, gt=0, description="HTTP read/connect timeout")

    # Poll loop tunables
    poll_max_seconds: float = Field(900.0, gt=0, description="Total poll time budget")
    poll_wait_seconds: float = Field(10.0, gt=0, description="Interval between polls")
    poll_error_retry_delay: float = Field(
        2.0, ge=0, description="Pause after a failed poll before trying again"
    )

    # Worker pool for async handles; None uses the shared default pool
    max_workers: Optional[int] = Field(None, gt=0, description="Async worker threads")

    log_level: str = Field("INFO", description="Log level for the docling_client logger")
    trace_http: bool = Field(False, description="Log every HTTP exchange at info level")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must be a valid http(s) URL")
        return v.rstrip("/")

    def __init__(self, **kwargs):
        """Initialize with fallback to the unprefixed POLL_* variables."""
        super().__init__(**kwargs)

        env_fallbacks = {
            "poll_max_seconds": "POLL_MAX_SECONDS",
            "poll_wait_seconds": "POLL_WAIT_SECONDS",
        }

        # Explicit kwargs and DOCLING_ prefixed variables win over the fallback
        for field_name, env_var in env_fallbacks.items():
            if field_name in kwargs or field_name in self.model_fields_set:
                continue
            if env_var in os.environ:
                setattr(self, field_name, os.environ[env_var])

    def setup_logging(self) -> None:
        """Configure logging for the client."""
        setup_logging(self.log_level)


def get_settings() -> ClientSettings:
    return ClientSettings()


def setup_logging(log_level: str = "INFO") -> None:
    """Attach a stream handler to the ``docling_client`` logger once."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger("docling_client")
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the given module name."""
    return logging.getLogger(f"docling_client.{name}")
