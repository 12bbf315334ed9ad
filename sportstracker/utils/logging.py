import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

ENGINE_LOGGER_NAME = "accountability_engine"


def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = True,
    logs_dir: Optional[Path] = None,
) -> None:
    """Set up logging configuration for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to log to files in addition to console
        logs_dir: Directory for log files (defaults to ./logs)
    """
    logs_dir = logs_dir or Path("logs")
    if log_to_file:
        logs_dir.mkdir(exist_ok=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.set_exc_info,
            # JSON formatting for file logs
            (
                structlog.processors.JSONRenderer()
                if log_to_file
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, log_level.upper())

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    if log_to_file:
        app_handler = logging.handlers.RotatingFileHandler(
            logs_dir / "app.log", maxBytes=10 * 1024 * 1024, backupCount=5  # 10MB
        )
        app_handler.setLevel(logging.INFO)
        app_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
            )
        )
        root_logger.addHandler(app_handler)

        # Penalty sweeps and forfeits, kept longer for auditing
        engine_handler = logging.handlers.RotatingFileHandler(
            logs_dir / "penalties.log",
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=10,
        )
        engine_handler.setLevel(logging.INFO)
        engine_handler.setFormatter(logging.Formatter("%(asctime)s - %(message)s"))
        engine_logger = logging.getLogger(ENGINE_LOGGER_NAME)
        engine_logger.addHandler(engine_handler)
        engine_logger.propagate = True

        error_handler = logging.handlers.RotatingFileHandler(
            logs_dir / "errors.log", maxBytes=5 * 1024 * 1024, backupCount=10  # 5MB
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
            )
        )
        root_logger.addHandler(error_handler)


def get_engine_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """Get a structured logger for accountability engine audit lines."""
    return structlog.get_logger(name or ENGINE_LOGGER_NAME)


def log_engine_event(
    event: str, details: Dict[str, Any], logger: Optional[structlog.BoundLogger] = None
) -> None:
    """Log a penalty-affecting event (sweep, forfeit, override) with context.

    Args:
        event: Short event name, e.g. ``"penalty_sweep"``
        details: Event-specific fields (week_id, user ids, amounts)
        logger: Logger to use (creates one if not provided)
    """
    if logger is None:
        logger = get_engine_logger()

    logger.info(
        f"Accountability event: {event}",
        engine_event=event,
        timestamp=datetime.now().isoformat(),
        **details,
    )
