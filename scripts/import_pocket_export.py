"""
Script to import a Pocket export CSV into an account

Usage:
    python -m scripts.import_pocket_export <account_id> <path/to/part_000000.csv>
"""

import argparse
import asyncio
import logging
import sys

from core.config import settings, validate_settings
from core.database import create_engine, create_session_factory
from core.logging import setup_logging
from services.container import build_container

logger = logging.getLogger(__name__)


async def import_pocket_export(account_id: str, file_path: str) -> int:
    validate_settings(settings)
    engine = create_engine(settings.DATABASE_URL)
    try:
        container = build_container(settings, create_session_factory(engine))
        result = await container.saved_items.import_pocket_export(account_id, file_path)
        if not result.success:
            logger.error(f"Pocket import failed: {result.error}")
            return 1
        stats = result.value
        logger.info(
            f"Pocket import finished: created={stats['created']}, skipped={stats['skipped']}, "
            f"failed={stats['failed']}, invalid={stats['invalid']}"
        )
        return 0 if stats["failed"] == 0 else 1
    finally:
        await engine.dispose()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import a Pocket export CSV")
    parser.add_argument("account_id")
    parser.add_argument("file_path")
    return parser.parse_args(argv)


if __name__ == "__main__":
    setup_logging()
    args = parse_args()
    sys.exit(asyncio.run(import_pocket_export(args.account_id, args.file_path)))
