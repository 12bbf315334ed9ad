"""
Application lifespan management.

Handles startup and shutdown of all subsystems:
- Configuration validation
- Database initialization and default seeding
- AppState construction (session restore + weekly penalty sweep)
- Background tasks (state polling)
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable, Optional

from .core.config import get_settings
from .core.config_validator import log_config_summary, validate_config
from .core.database import close_database, health_check, init_database
from .infrastructure.repositories import SqlAlchemyKeyValueStore
from .services.app_state import AppState
from .services.data_service import DataService
from .utils.task_tracker import cancel_all_tasks, get_active_task_count

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(
    clock: Callable[[], datetime] = datetime.now,
    database_url: Optional[str] = None,
) -> AsyncIterator[AppState]:
    """Start every subsystem, yield a ready AppState, then shut down."""
    logger.info("Sports tracker starting up...")

    settings = get_settings()
    config_errors = validate_config(settings)
    if config_errors:
        for err in config_errors:
            logger.error(f"Config validation error: {err}")
        logger.critical(
            "Aborting startup due to %d configuration error(s)", len(config_errors)
        )
        sys.exit(1)
    log_config_summary(settings)

    try:
        await init_database(database_url)
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    if not await health_check():
        await close_database()
        raise RuntimeError("Database is not reachable after initialization")

    data_service = DataService(SqlAlchemyKeyValueStore(), clock=clock)
    state = AppState(
        data_service,
        clock=clock,
        poll_interval=settings.poll_interval_seconds,
    )
    await state.start()
    state.start_polling()
    logger.info("Application state ready")

    try:
        yield state
    finally:
        logger.info("Sports tracker shutting down...")
        await state.stop_polling()
        if get_active_task_count():
            await cancel_all_tasks()
        await close_database()
        logger.info("Shutdown complete")
