"""
Account endpoints: creation, wipeout, subscriptions, manual saves and the
event log
"""

import logging

from fastapi import APIRouter, Depends, Query, Request

from api.dependencies import get_container
from api.errors import unwrap
from schemas.api import (
    CreateAccountRequest,
    DeliveryScheduleRequest,
    FeedItemActionRequest,
    EventLogResponse,
    IntervalSubscribeRequest,
    SavedFeedItemResponse,
    SaveUrlRequest,
    SubscribeRequest,
    SubscribeResponse,
    UnsubscribeRequest,
    WipeoutResponse,
)
from schemas.ids import parse_account_id
from services.container import ServiceContainer
from services.subscriptions import SubscribeOutcome

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/accounts", tags=["Accounts"])


def _subscribe_response(outcome: SubscribeOutcome) -> SubscribeResponse:
    return SubscribeResponse(
        feed_source=outcome.feed_source.to_storage(),
        user_feed_subscription_id=outcome.user_feed_subscription_id,
        is_resubscribe=outcome.is_resubscribe,
    )


@router.post("", status_code=201)
async def create_account(
    body: CreateAccountRequest,
    container: ServiceContainer = Depends(get_container),
):
    account = unwrap(await container.accounts.create_account(body.firebase_uid, body.email))
    return account.to_storage()


@router.delete("/{account_id}", response_model=WipeoutResponse)
async def wipeout_account(
    account_id: str,
    request: Request,
    container: ServiceContainer = Depends(get_container),
):
    """Delete the account and everything it owns."""
    logger.info(f"[{request.state.request_id}] Wipeout requested for account {account_id}")
    summary = unwrap(await container.wipeout.wipeout_account(account_id))
    return WipeoutResponse(
        account_id=summary.account_id,
        documents_deleted=summary.documents_deleted,
        batches_committed=summary.batches_committed,
        files_deleted=summary.files_deleted,
    )


# ============================================================================
# Subscriptions
# ============================================================================

@router.get("/{account_id}/subscriptions")
async def list_subscriptions(
    account_id: str,
    active_only: bool = Query(False, description="Only return active subscriptions"),
    container: ServiceContainer = Depends(get_container),
):
    account_id = unwrap(parse_account_id(account_id))
    subscriptions = unwrap(await container.subscriptions.list_for_account(account_id, active_only=active_only))
    return [subscription.to_storage() for subscription in subscriptions]


@router.post("/{account_id}/subscriptions", response_model=SubscribeResponse, status_code=201)
async def subscribe_to_url(
    account_id: str,
    body: SubscribeRequest,
    container: ServiceContainer = Depends(get_container),
):
    outcome = unwrap(await container.subscriptions.subscribe_account_to_url(account_id, body.url))
    return _subscribe_response(outcome)


@router.post("/{account_id}/subscriptions/interval", response_model=SubscribeResponse, status_code=201)
async def subscribe_to_interval(
    account_id: str,
    body: IntervalSubscribeRequest,
    container: ServiceContainer = Depends(get_container),
):
    outcome = unwrap(
        await container.subscriptions.subscribe_account_to_interval(account_id, body.interval_seconds)
    )
    return _subscribe_response(outcome)


@router.post("/{account_id}/subscriptions/unsubscribe", status_code=204)
async def unsubscribe_from_url(
    account_id: str,
    body: UnsubscribeRequest,
    container: ServiceContainer = Depends(get_container),
):
    unwrap(await container.subscriptions.unsubscribe_account_from_url(account_id, body.url))


@router.put("/{account_id}/subscriptions/{user_feed_subscription_id}/delivery-schedule")
async def update_delivery_schedule(
    account_id: str,
    user_feed_subscription_id: str,
    body: DeliveryScheduleRequest,
    container: ServiceContainer = Depends(get_container),
):
    subscription = unwrap(await container.subscriptions.update_delivery_schedule(
        account_id, user_feed_subscription_id, body.delivery_schedule
    ))
    return subscription.to_storage()


# ============================================================================
# Manual saves and event log
# ============================================================================

@router.post("/{account_id}/feed-items", response_model=SavedFeedItemResponse, status_code=201)
async def save_url(
    account_id: str,
    body: SaveUrlRequest,
    container: ServiceContainer = Depends(get_container),
):
    created = unwrap(await container.saved_items.save_url_for_account(account_id, body.url, body.source))
    return SavedFeedItemResponse(feed_item=created.feed_item.to_storage(), created=created.created)


@router.post("/{account_id}/feed-items/{feed_item_id}/actions", status_code=201)
async def record_feed_item_action(
    account_id: str,
    feed_item_id: str,
    body: FeedItemActionRequest,
    container: ServiceContainer = Depends(get_container),
):
    """Record an action on one of the account's feed items in the event log."""
    event = unwrap(await container.saved_items.record_feed_item_action(account_id, feed_item_id, body.action_type))
    return event.to_storage()


@router.get("/{account_id}/events", response_model=EventLogResponse)
async def list_events(
    account_id: str,
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of events to return"),
    container: ServiceContainer = Depends(get_container),
):
    """The newest ``limit`` events for the account, oldest first."""
    account_id = unwrap(parse_account_id(account_id))
    events = unwrap(await container.event_log.list_for_account(account_id, limit=limit))
    return EventLogResponse(account_id=account_id, events=[event.to_storage() for event in events])
