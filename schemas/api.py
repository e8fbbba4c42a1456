"""
Pydantic schemas for API request/response models
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models.base import FeedSourceType


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    pending_imports: Optional[int] = None
    feed_provider: str

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "pending_imports": 3,
                "feed_provider": "local",
            }
        }


# ============================================================================
# Account Schemas
# ============================================================================

class CreateAccountRequest(BaseModel):
    firebase_uid: str
    email: str


class WipeoutResponse(BaseModel):
    account_id: str
    documents_deleted: int
    batches_committed: int
    files_deleted: int


# ============================================================================
# Subscription Schemas
# ============================================================================

class SubscribeRequest(BaseModel):
    url: str


class IntervalSubscribeRequest(BaseModel):
    interval_seconds: int


class UnsubscribeRequest(BaseModel):
    url: str


class DeliveryScheduleRequest(BaseModel):
    delivery_schedule: Dict[str, Any]


class SubscribeResponse(BaseModel):
    feed_source: Dict[str, Any]
    user_feed_subscription_id: str
    is_resubscribe: bool


class SubscriptionChangeRequest(BaseModel):
    """Before/after snapshots of a changed subscription record"""
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None


class SubscriptionChangeResponse(BaseModel):
    deregistration_triggered: bool


# ============================================================================
# Feed Item Schemas
# ============================================================================

class SaveUrlRequest(BaseModel):
    url: str
    source: FeedSourceType = FeedSourceType.PWA


class SavedFeedItemResponse(BaseModel):
    feed_item: Dict[str, Any]
    created: bool


class FeedItemActionRequest(BaseModel):
    action_type: str = Field(..., description="MARK_DONE, STAR, SAVE, ... or their undo actions")


# ============================================================================
# Webhook Schemas
# ============================================================================

class IngestionResponse(BaseModel):
    feed_url: str
    subscriptions: int
    entries: int
    created: int
    duplicates: int


# ============================================================================
# Event Log Schemas
# ============================================================================

class EventLogResponse(BaseModel):
    account_id: str
    events: List[Dict[str, Any]] = Field(default_factory=list)


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    error_type: str
    context: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Invalid URL: url: Input should be a valid URL",
                "error_type": "ValidationError",
                "context": {"field_name": "URL"},
                "timestamp": "2024-01-15T10:30:00Z",
            }
        }
