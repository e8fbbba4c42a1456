"""
Event log service.

Appends account-visible events. Callers that change state and log the change
use ``add_to_session`` so both land in one transaction and the event is
written exactly once.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.clock import Clock
from core.exceptions import StoreError
from core.results import Result, make_error_result, make_success_result
from models.base import ActorType, FeedItemActionType
from models.event_log import EventLogRecord
from schemas.base import make_uuid
from schemas.event_log import (
    SYSTEM_ACTOR,
    Actor,
    EventLogData,
    EventLogItem,
    FeedItemActionEventData,
)

logger = logging.getLogger(__name__)


class EventLogService:
    def __init__(self, session_factory: async_sessionmaker, clock: Clock, environment: str):
        self.session_factory = session_factory
        self.clock = clock
        self.environment = environment

    def make_event(
        self,
        account_id: str,
        data: EventLogData,
        actor: Optional[Actor] = None,
    ) -> EventLogItem:
        now = self.clock.now()
        return EventLogItem(
            event_id=make_uuid(),
            account_id=account_id,
            actor=actor or SYSTEM_ACTOR,
            environment=self.environment,
            data=data,
            created_time=now,
            last_updated_time=now,
        )

    def add_to_session(self, session: AsyncSession, event: EventLogItem) -> None:
        session.add(EventLogRecord.from_schema(event))

    async def append(self, event: EventLogItem) -> Result[EventLogItem]:
        try:
            async with self.session_factory() as session:
                self.add_to_session(session, event)
                await session.commit()
        except SQLAlchemyError as e:
            return make_error_result(StoreError(
                "Failed to append event log item",
                context={"operation": "insert", "table_name": "event_log", "event_id": event.event_id},
                original_exception=e
            ))

        logger.debug(f"Logged {event.event_type} for account {event.account_id}")
        return make_success_result(event)

    async def log_feed_item_action(
        self,
        account_id: str,
        feed_item_id: str,
        action_type: FeedItemActionType,
    ) -> Result[EventLogItem]:
        event = self.make_event(
            account_id,
            FeedItemActionEventData(feed_item_id=feed_item_id, feed_item_action_type=action_type),
            actor=Actor(actor_type=ActorType.USER, account_id=account_id),
        )
        return await self.append(event)

    async def list_for_account(self, account_id: str, limit: Optional[int] = None) -> Result[List[EventLogItem]]:
        """Events for an account, oldest first. With ``limit``, the newest ``limit`` events."""
        stmt = select(EventLogRecord).where(EventLogRecord.account_id == account_id)
        if limit:
            stmt = stmt.order_by(EventLogRecord.created_time.desc()).limit(limit)
        else:
            stmt = stmt.order_by(EventLogRecord.created_time.asc())

        try:
            async with self.session_factory() as session:
                records = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            return make_error_result(StoreError(
                "Failed to list event log",
                context={"operation": "query", "table_name": "event_log", "account_id": account_id},
                original_exception=e
            ))

        if limit:
            records = list(reversed(records))
        return make_success_result([EventLogItem.from_storage(record.to_dict()) for record in records])
