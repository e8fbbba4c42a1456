from datetime import datetime

from models.base import ImportQueueItemStatus
from schemas.base import StorageModel
from schemas.ids import AccountIdStr, UuidStr


class ImportQueueItem(StorageModel):
    """Ephemeral work record: created at ingestion, deleted once imported."""

    import_queue_item_id: UuidStr
    feed_item_id: UuidStr
    account_id: AccountIdStr
    url: str
    status: ImportQueueItemStatus
    created_time: datetime
    last_updated_time: datetime
