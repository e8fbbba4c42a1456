import asyncio
import logging

from core.config import settings, validate_settings
from core.database import create_all_tables, create_engine
from core.logging import setup_logging

logger = logging.getLogger(__name__)


async def init_database():
    validate_settings(settings)
    logger.info("Connecting to database...")
    engine = create_engine(settings.DATABASE_URL)
    try:
        logger.info("Creating tables...")
        await create_all_tables(engine)
        logger.info("Tables created successfully.")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(init_database())
