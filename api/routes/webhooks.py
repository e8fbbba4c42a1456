"""
Push provider webhook and subscription change trigger
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from api.dependencies import get_container
from api.errors import unwrap
from core.exceptions import ValidationError
from schemas.api import IngestionResponse, SubscriptionChangeRequest, SubscriptionChangeResponse
from services.container import ServiceContainer

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Webhooks"])


@router.post("/webhooks/superfeedr", response_model=IngestionResponse)
async def superfeedr_webhook(
    request: Request,
    x_hub_signature: Optional[str] = Header(None),
    container: ServiceContainer = Depends(get_container),
):
    """
    New entries for a registered feed. The raw body is signed with the
    webhook secret (``X-Hub-Signature: sha1=<hex>``).
    """
    raw_body = await request.body()
    summary = unwrap(await container.webhooks.handle_push_content(raw_body, x_hub_signature))
    return IngestionResponse(
        feed_url=summary.feed_url,
        subscriptions=summary.subscriptions,
        entries=summary.entries,
        created=summary.created,
        duplicates=summary.duplicates,
    )


@router.post(
    "/triggers/user-feed-subscriptions/{user_feed_subscription_id}",
    response_model=SubscriptionChangeResponse,
)
async def user_feed_subscription_changed(
    user_feed_subscription_id: str,
    body: SubscriptionChangeRequest,
    container: ServiceContainer = Depends(get_container),
):
    if body.after is not None and body.after.get("user_feed_subscription_id") != user_feed_subscription_id:
        raise ValidationError(
            "Subscription snapshot does not match the changed record",
            context={"field_name": "user_feed_subscription_id", "field_value": user_feed_subscription_id}
        )
    acted = unwrap(await container.webhooks.handle_subscription_state_changed(body.before, body.after))
    return SubscriptionChangeResponse(deregistration_triggered=acted)
