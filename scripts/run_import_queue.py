"""
Script to process the import queue once, outside the API scheduler
"""

import asyncio
import logging
import sys

from core.config import settings, validate_settings
from core.database import create_engine, create_session_factory
from core.logging import setup_logging
from services.container import build_container

logger = logging.getLogger(__name__)


async def run_import_queue() -> int:
    """Drain up to IMPORT_BATCH_SIZE queue items; returns the process exit code."""
    validate_settings(settings)
    engine = create_engine(settings.DATABASE_URL)
    try:
        container = build_container(settings, create_session_factory(engine))
        result = await container.runner.run_pending(settings.IMPORT_BATCH_SIZE)
        logger.info(
            f"Import run {result['status']}: processed={result['items_processed']}, "
            f"failed={result['items_failed']}, skipped={result['items_skipped']}"
        )
        return 0 if result["status"] != "failed" else 1
    finally:
        await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_import_queue()))
