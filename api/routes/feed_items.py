"""
Feed item endpoints
"""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_container
from api.errors import unwrap
from schemas.ids import parse_feed_item_id
from services.container import ServiceContainer

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/feed-items", tags=["Feed Items"])


@router.get("/{feed_item_id}")
async def get_feed_item(
    feed_item_id: str,
    container: ServiceContainer = Depends(get_container),
):
    feed_item_id = unwrap(parse_feed_item_id(feed_item_id))
    feed_item = unwrap(await container.feed_items.get_feed_item(feed_item_id))
    return feed_item.to_storage()


@router.post("/{feed_item_id}/reimport", status_code=202)
async def request_reimport(
    feed_item_id: str,
    container: ServiceContainer = Depends(get_container),
):
    """
    Queue a failed or completed item for another import. An item that is
    being imported right now is returned unchanged.
    """
    feed_item_id = unwrap(parse_feed_item_id(feed_item_id))
    feed_item = unwrap(await container.runner.request_reimport(feed_item_id))
    return feed_item.to_storage()
