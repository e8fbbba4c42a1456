"""
Inbound feed payloads.

``SuperfeedrWebhookBody`` is the JSON body the push hub posts for a
registered topic. ``FeedEntry`` is the provider-neutral shape both the push
webhook and the local feed poller hand to ingestion.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SuperfeedrStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    code: int
    feed: str
    http: Optional[str] = None
    next_fetch: Optional[int] = Field(default=None, alias="nextFetch")
    last_fetch: Optional[int] = Field(default=None, alias="lastFetch")


class SuperfeedrActor(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")


class SuperfeedrItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1)
    published: Optional[int] = None
    updated: Optional[int] = None
    title: str = ""
    summary: str = ""
    permalink_url: str = Field(alias="permalinkUrl", min_length=1)
    actor: Optional[SuperfeedrActor] = None
    source: Optional[Dict[str, Any]] = None


class SuperfeedrWebhookBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    status: SuperfeedrStatus
    title: str = ""
    updated: Optional[int] = None
    id: Optional[str] = None
    items: List[SuperfeedrItem] = Field(default_factory=list)


class FeedEntry(BaseModel):
    """One entry of a subscribed feed, independent of how it was delivered."""

    external_id: str
    url: str
    title: str = ""
    summary: Optional[str] = None
    author: Optional[str] = None
    published: Optional[datetime] = None
