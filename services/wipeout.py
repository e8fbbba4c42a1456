"""
Account wipeout.

Deletes everything an account owns. Deletes run in batches of at most
``batch_size`` rows, one transaction per batch, strictly in order. When a
batch fails the later batches are not attempted and a
``PartialBatchFailure`` reports how far it got; running the wipeout again
deletes whatever remains.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Tuple

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.exceptions import PartialBatchFailure, StoreError
from core.results import Result, make_error_result, make_success_result, prefix_error_result
from models.accounts import AccountRecord
from models.event_log import EventLogRecord
from models.feed_items import FeedItemRecord
from models.import_queue import ImportQueueRecord
from models.user_feed_subscriptions import UserFeedSubscriptionRecord
from schemas.ids import parse_account_id
from services.storage import ObjectStorage, get_account_storage_prefix
from services.subscriptions import SubscriptionLifecycleManager

logger = logging.getLogger(__name__)

# Deletion order: dependents before the rows they describe
_OWNED_TABLES = (
    (EventLogRecord, EventLogRecord.event_id),
    (ImportQueueRecord, ImportQueueRecord.import_queue_item_id),
    (FeedItemRecord, FeedItemRecord.feed_item_id),
    (UserFeedSubscriptionRecord, UserFeedSubscriptionRecord.user_feed_subscription_id),
)

DocumentRef = Tuple[type, str]


@dataclass(frozen=True)
class WipeoutSummary:
    account_id: str
    documents_deleted: int
    batches_committed: int
    files_deleted: int = 0


def chunk_refs(refs: List[DocumentRef], batch_size: int) -> List[List[DocumentRef]]:
    return [refs[i:i + batch_size] for i in range(0, len(refs), batch_size)]


class WipeoutService:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        subscriptions: SubscriptionLifecycleManager,
        storage: ObjectStorage,
        batch_size: int = 500,
    ):
        self.session_factory = session_factory
        self.subscriptions = subscriptions
        self.storage = storage
        self.batch_size = batch_size

    async def _collect_refs(self, account_id: str) -> List[DocumentRef]:
        refs = []
        async with self.session_factory() as session:
            for model, id_column in _OWNED_TABLES:
                ids = (await session.execute(
                    select(id_column).where(model.account_id == account_id)
                )).scalars().all()
                refs.extend((model, doc_id) for doc_id in ids)
        return refs

    async def _delete_batch(self, refs: List[DocumentRef]) -> int:
        """Delete one batch in a single transaction. Returns rows deleted."""
        ids_by_model: Dict[type, List[str]] = defaultdict(list)
        for model, doc_id in refs:
            ids_by_model[model].append(doc_id)

        deleted = 0
        async with self.session_factory() as session:
            for model, id_column in _OWNED_TABLES:
                ids = ids_by_model.get(model)
                if ids:
                    result = await session.execute(delete(model).where(id_column.in_(ids)))
                    deleted += result.rowcount
            await session.commit()
        return deleted

    async def wipeout_account(self, firebase_uid: str) -> Result[WipeoutSummary]:
        account_id_result = parse_account_id(firebase_uid)
        if not account_id_result.success:
            return account_id_result
        account_id = account_id_result.value

        # Stop deliveries first; nothing is deleted if this fails
        active_result = await self.subscriptions.list_for_account(account_id, active_only=True)
        if not active_result.success:
            return prefix_error_result(active_result, "Error wiping out account")
        for subscription in active_result.value:
            result = await self.subscriptions.unsubscribe_subscription(
                account_id, subscription.user_feed_subscription_id
            )
            if not result.success:
                return prefix_error_result(result, "Error unsubscribing during account wipeout")

        prefix = get_account_storage_prefix(account_id)
        try:
            files_deleted = await self.storage.delete_prefix(prefix)
        except OSError as e:
            return make_error_result(StoreError(
                "Failed to delete stored files",
                context={"operation": "delete", "table_name": "object_storage", "prefix": prefix},
                original_exception=e
            ))

        try:
            refs = await self._collect_refs(account_id)
        except SQLAlchemyError as e:
            return make_error_result(StoreError(
                "Failed to collect documents for wipeout",
                context={"operation": "query", "table_name": "*", "account_id": account_id},
                original_exception=e
            ))

        batches = chunk_refs(refs, self.batch_size)
        documents_deleted = 0
        for index, batch in enumerate(batches):
            try:
                documents_deleted += await self._delete_batch(batch)
            except SQLAlchemyError as e:
                logger.error(
                    f"Wipeout of {account_id} stopped at batch {index + 1} of {len(batches)}",
                    extra={"account_id": account_id}
                )
                return make_error_result(PartialBatchFailure(
                    f"Wipeout batch {index + 1} of {len(batches)} failed",
                    context={
                        "account_id": account_id,
                        "batches_completed": index,
                        "total_batches": len(batches),
                        "documents_deleted": documents_deleted,
                    },
                    original_exception=e
                ))
            logger.debug(f"Wipeout of {account_id}: batch {index + 1}/{len(batches)} committed")

        try:
            async with self.session_factory() as session:
                await session.execute(delete(AccountRecord).where(AccountRecord.account_id == account_id))
                await session.commit()
        except SQLAlchemyError as e:
            return make_error_result(StoreError(
                "Failed to delete account",
                context={"operation": "delete", "table_name": "accounts", "account_id": account_id},
                original_exception=e
            ))

        logger.info(
            f"Wiped out account {account_id}: {documents_deleted} documents in {len(batches)} batches, "
            f"{files_deleted} files"
        )
        return make_success_result(WipeoutSummary(
            account_id=account_id,
            documents_deleted=documents_deleted,
            batches_committed=len(batches),
            files_deleted=files_deleted,
        ))
