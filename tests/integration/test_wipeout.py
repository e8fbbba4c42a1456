"""
Integration tests for account wipeout
"""

from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from conftest import OTHER_ACCOUNT_ID, TEST_ACCOUNT_ID, TEST_FEED_URL, make_saved_draft
from core.exceptions import PartialBatchFailure, ValidationError
from models.accounts import AccountRecord
from models.base import FeedItemActionType
from models.event_log import EventLogRecord
from models.feed_items import FeedItemRecord
from models.import_queue import ImportQueueRecord
from models.user_feed_subscriptions import UserFeedSubscriptionRecord
from schemas.base import make_uuid
from schemas.event_log import FeedItemActionEventData


async def count_rows(container, model, account_id=TEST_ACCOUNT_ID):
    async with container.session_factory() as session:
        return (await session.execute(
            select(func.count()).select_from(model).where(model.account_id == account_id)
        )).scalar_one()


async def seed_events(container, count, account_id=TEST_ACCOUNT_ID):
    async with container.session_factory() as session:
        for _ in range(count):
            container.event_log.add_to_session(session, container.event_log.make_event(
                account_id,
                FeedItemActionEventData(feed_item_id=make_uuid(), feed_item_action_type=FeedItemActionType.STAR),
            ))
        await session.commit()


class TestWipeout:

    @pytest.mark.asyncio
    async def test_wipeout_removes_everything_owned(self, container, account, push_provider, storage):
        await container.accounts.create_account(OTHER_ACCOUNT_ID, "bob@example.com")
        await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)
        await container.subscriptions.subscribe_account_to_url(OTHER_ACCOUNT_ID, TEST_FEED_URL)
        await container.subscriptions.subscribe_account_to_interval(TEST_ACCOUNT_ID, 3600)
        created = await container.feed_items.create_feed_item(TEST_ACCOUNT_ID, make_saved_draft())
        await container.feed_items.create_feed_item(OTHER_ACCOUNT_ID, make_saved_draft())
        feed_item = created.value.feed_item
        storage.files[container.feed_items.get_storage_path(feed_item, "raw.html")] = "<html></html>"
        storage.files[f"feedItems/{OTHER_ACCOUNT_ID}/x/raw.html"] = "<html></html>"

        result = await container.wipeout.wipeout_account(TEST_ACCOUNT_ID)

        assert result.success
        assert result.value.files_deleted == 1
        for model in (EventLogRecord, ImportQueueRecord, FeedItemRecord, UserFeedSubscriptionRecord, AccountRecord):
            assert await count_rows(container, model) == 0
        # Other accounts are untouched
        assert await count_rows(container, FeedItemRecord, OTHER_ACCOUNT_ID) == 1
        assert await count_rows(container, AccountRecord, OTHER_ACCOUNT_ID) == 1
        assert list(storage.files) == [f"feedItems/{OTHER_ACCOUNT_ID}/x/raw.html"]
        # The feed keeps its registration while bob still subscribes
        assert push_provider.unsubscribed == []

    @pytest.mark.asyncio
    async def test_wipeout_deregisters_sole_subscription(self, container, account, push_provider):
        await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)

        result = await container.wipeout.wipeout_account(TEST_ACCOUNT_ID)

        assert result.success
        assert push_provider.unsubscribed == [TEST_FEED_URL]

    @pytest.mark.asyncio
    async def test_deletes_in_bounded_batches(self, container, account):
        await seed_events(container, 1200)
        service = container.wipeout

        with patch.object(service, "_delete_batch", wraps=service._delete_batch) as delete_batch:
            result = await service.wipeout_account(TEST_ACCOUNT_ID)

        assert result.success
        assert [len(c.args[0]) for c in delete_batch.call_args_list] == [500, 500, 200]
        assert result.value.documents_deleted == 1200
        assert result.value.batches_committed == 3

    @pytest.mark.asyncio
    async def test_failed_batch_stops_and_reports_progress(self, container, account):
        await seed_events(container, 1200)
        service = container.wipeout
        real_delete_batch = service._delete_batch
        calls = []

        async def flaky_delete_batch(refs):
            calls.append(len(refs))
            if len(calls) == 2:
                raise OperationalError("DELETE", {}, Exception("database is locked"))
            return await real_delete_batch(refs)

        with patch.object(service, "_delete_batch", side_effect=flaky_delete_batch):
            result = await service.wipeout_account(TEST_ACCOUNT_ID)

        assert isinstance(result.error, PartialBatchFailure)
        assert result.error.batches_completed == 1
        assert result.error.context["total_batches"] == 3
        assert result.error.context["documents_deleted"] == 500
        assert calls == [500, 500]
        assert await count_rows(container, EventLogRecord) == 700
        assert await count_rows(container, AccountRecord) == 1

        # Running again finishes the job
        retry = await service.wipeout_account(TEST_ACCOUNT_ID)

        assert retry.success
        assert retry.value.documents_deleted == 700
        assert await count_rows(container, EventLogRecord) == 0
        assert await count_rows(container, AccountRecord) == 0

    @pytest.mark.asyncio
    async def test_invalid_account_id(self, container):
        result = await container.wipeout.wipeout_account("")

        assert isinstance(result.error, ValidationError)
