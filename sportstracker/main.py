"""
Headless runner: keeps the weekly penalty sweep going.

Usage:
    python -m sportstracker.main
"""

import asyncio
import logging
import os

from .core.config import get_settings
from .lifecycle import lifespan
from .utils.logging import setup_logging
from .version import __version__

logger = logging.getLogger(__name__)


async def run_penalty_checks(state, interval_seconds: float) -> None:
    """Re-run the (idempotent) sweep every *interval_seconds*."""
    logger.info(f"Starting penalty checks every {interval_seconds}s")

    while True:
        try:
            await asyncio.sleep(interval_seconds)
            week = await state.run_penalty_check()
            if week:
                logger.info(f"Settled penalties for week {week}")
        except asyncio.CancelledError:
            logger.info("Penalty check task cancelled")
            break
        except Exception as e:
            logger.error(f"Error in penalty check: {e}", exc_info=True)


async def main() -> None:
    settings = get_settings()
    async with lifespan() as state:
        logger.info(f"sportstracker {__version__} running ({settings.environment})")
        await run_penalty_checks(state, settings.penalty_check_interval_seconds)


def cli() -> None:
    log_level = os.getenv("LOG_LEVEL", get_settings().log_level)
    setup_logging(log_level=log_level, log_to_file=True)
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")


if __name__ == "__main__":
    cli()
