"""
Base class for feed item importers.

Importers never touch the store directly. They get two narrow collaborators:

- ``update_feed_item(feed_item_id, updates)`` writes content fields onto the item
- ``write_file_to_storage(path, content, content_type)`` stores derived files

and raise ``FeedPipelineException`` subclasses on failure. The import runner
owns the state transitions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Union

from core.exceptions import StoreError
from ingestion.http_fetcher import HttpFetcher
from schemas.feed_items import FeedItem
from services.storage import get_feed_item_storage_path

UpdateFeedItemFn = Callable[[str, Dict[str, Any]], Awaitable[None]]
WriteFileToStorageFn = Callable[[str, Union[str, bytes], str], Awaitable[None]]


@dataclass(frozen=True)
class ImportOutcome:
    # Leave should_fetch set so the item is fetched again later
    should_refresh: bool = False


class FeedItemImporter(ABC):
    def __init__(
        self,
        update_feed_item: UpdateFeedItemFn,
        write_file_to_storage: WriteFileToStorageFn,
        fetcher: HttpFetcher,
    ):
        self.update_feed_item = update_feed_item
        self.write_file_to_storage = write_file_to_storage
        self.fetcher = fetcher

    @abstractmethod
    async def import_item(self, feed_item: FeedItem) -> ImportOutcome:
        """
        Fetch and store the item's content.

        Raises:
            FeedPipelineException: If any step fails
        """
        pass

    @staticmethod
    def storage_path(feed_item: FeedItem, filename: str) -> str:
        return get_feed_item_storage_path(feed_item.account_id, feed_item.feed_item_id, filename)

    async def store_file(self, feed_item: FeedItem, filename: str, content: Union[str, bytes], content_type: str) -> None:
        """
        Raises:
            StoreError: If the file cannot be written
        """
        path = self.storage_path(feed_item, filename)
        try:
            await self.write_file_to_storage(path, content, content_type)
        except OSError as e:
            raise StoreError(
                f"Error saving {filename}",
                context={"operation": "write", "table_name": "object_storage", "path": path},
                original_exception=e
            )
