"""
Startup configuration validation and redacted summary logging.

Called early in the application lifespan to fail fast on misconfiguration.
"""

import logging
import re
from typing import List

from .config import Settings

logger = logging.getLogger(__name__)

# Minimal pattern: scheme://... or scheme:///...
_SQLALCHEMY_URL_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+\-.]*://")

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_config(settings: Settings) -> List[str]:
    """
    Validate application configuration and return a list of error strings.

    An empty list means the configuration is valid.
    """
    errors: List[str] = []

    # -- DATABASE_URL format -----------------------------------------------
    db_url = (settings.database_url or "").strip()
    if not db_url:
        errors.append("DATABASE_URL is required but missing or empty")
    elif not _SQLALCHEMY_URL_RE.match(db_url):
        errors.append(
            f"DATABASE_URL format is invalid (expected SQLAlchemy URL like "
            f"'sqlite+aiosqlite:///...'): '{db_url}'"
        )

    # -- Background intervals ----------------------------------------------
    if settings.poll_interval_seconds <= 0:
        errors.append(
            f"POLL_INTERVAL_SECONDS must be positive, got {settings.poll_interval_seconds}"
        )
    if settings.penalty_check_interval_seconds <= 0:
        errors.append(
            "PENALTY_CHECK_INTERVAL_SECONDS must be positive, "
            f"got {settings.penalty_check_interval_seconds}"
        )
    if settings.tip_timeout_seconds <= 0:
        errors.append(
            f"TIP_TIMEOUT_SECONDS must be positive, got {settings.tip_timeout_seconds}"
        )

    if settings.log_level.upper() not in _VALID_LOG_LEVELS:
        errors.append(f"LOG_LEVEL '{settings.log_level}' is not a logging level")

    return errors


def _redact(secret: str) -> str:
    """Return first 4 characters followed by '***', or '<empty>' if blank."""
    if not secret:
        return "<empty>"
    return secret[:4] + "***"


def _db_type(database_url: str) -> str:
    """Extract the database backend name from a SQLAlchemy URL."""
    if not database_url:
        return "none"
    scheme = database_url.split("://")[0] if "://" in database_url else database_url
    # e.g. "sqlite+aiosqlite" -> "sqlite"
    return scheme.split("+")[0].lower()


def log_config_summary(settings: Settings) -> None:
    """Log an INFO-level summary of loaded configuration with secrets redacted."""
    summary_lines = [
        f"environment={settings.environment}",
        f"database={_db_type(settings.database_url)}",
        f"tip_model={settings.tip_model}",
        f"poll_interval={settings.poll_interval_seconds}s",
    ]

    if settings.gemini_api_key:
        summary_lines.append(f"gemini_key={_redact(settings.gemini_api_key)}")
    if settings.openai_api_key:
        summary_lines.append(f"openai_key={_redact(settings.openai_api_key)}")
    if settings.anthropic_api_key:
        summary_lines.append(f"anthropic_key={_redact(settings.anthropic_api_key)}")

    logger.info("Config loaded: %s", " | ".join(summary_lines))
