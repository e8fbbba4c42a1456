"""
Object storage for files derived from feed items (raw HTML, Markdown,
transcripts).
"""

import asyncio
import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

FEED_ITEMS_STORAGE_COLLECTION = "feedItems"

RAW_HTML_FILENAME = "raw.html"
LLM_CONTEXT_FILENAME = "llmContext.md"
TRANSCRIPT_FILENAME = "transcript.md"
XKCD_EXPLAIN_FILENAME = "xkcdExplain.md"


def get_feed_item_storage_path(account_id: str, feed_item_id: str, filename: str) -> str:
    return f"{FEED_ITEMS_STORAGE_COLLECTION}/{account_id}/{feed_item_id}/{filename}"


def get_account_storage_prefix(account_id: str) -> str:
    return f"{FEED_ITEMS_STORAGE_COLLECTION}/{account_id}/"


class ObjectStorage(ABC):
    """Write files by path and delete them by prefix."""

    @abstractmethod
    async def write_file(self, path: str, content: Union[str, bytes], content_type: str) -> None:
        pass

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Delete every file under ``prefix``. Returns the number of files deleted."""
        pass


class LocalObjectStorage(ObjectStorage):
    """Files on the local filesystem under ``root``."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        resolved = (self.root / path).resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise ValueError(f"Storage path escapes storage root: {path}")
        return resolved

    async def write_file(self, path: str, content: Union[str, bytes], content_type: str) -> None:
        target = self._resolve(path)
        data = content.encode("utf-8") if isinstance(content, str) else content

        def _write():
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)
        logger.debug(f"Wrote {len(data)} bytes ({content_type}) to {path}")

    async def delete_prefix(self, prefix: str) -> int:
        target = self._resolve(prefix.rstrip("/"))

        def _delete() -> int:
            if not target.exists():
                return 0
            if target.is_file():
                target.unlink()
                return 1
            count = sum(1 for p in target.rglob("*") if p.is_file())
            shutil.rmtree(target)
            return count

        deleted = await asyncio.to_thread(_delete)
        logger.info(f"Deleted {deleted} stored files under {prefix}")
        return deleted
