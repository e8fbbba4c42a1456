"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

FEED_SOURCE_TYPES = ("RSS", "YOUTUBE_CHANNEL", "INTERVAL", "PWA", "EXTENSION", "POCKET_EXPORT")
FEED_ITEM_TYPES = ("ARTICLE", "VIDEO", "WEBSITE", "TWEET", "XKCD")
IMPORT_STATUSES = ("NEW", "PROCESSING", "FAILED", "COMPLETED")
QUEUE_STATUSES = ("NEW", "PROCESSING", "FAILED")
EVENT_TYPES = (
    "FEED_ITEM_ACTION",
    "FEED_ITEM_IMPORTED",
    "SUBSCRIBED_TO_FEED_SOURCE",
    "UNSUBSCRIBED_FROM_FEED_SOURCE",
)


def _enum(values, name, length):
    return sa.Enum(*values, name=name, native_enum=False, length=length)


def upgrade():
    op.create_table(
        "accounts",
        sa.Column("account_id", sa.String(128), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("created_time", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "user_feed_subscriptions",
        sa.Column("user_feed_subscription_id", sa.String(36), primary_key=True),
        sa.Column("account_id", sa.String(128), nullable=False),
        sa.Column("feed_source_type", _enum(FEED_SOURCE_TYPES, "feedsourcetype", 32), nullable=False),
        sa.Column("identity_key", sa.String(2100), nullable=False),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("channel_id", sa.String(64), nullable=True),
        sa.Column("interval_seconds", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("delivery_schedule", sa.JSON(), nullable=False),
        sa.Column("unsubscribed_time", sa.DateTime(), nullable=True),
        sa.Column("created_time", sa.DateTime(), nullable=False),
        sa.Column("last_updated_time", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("account_id", "identity_key", name="uq_user_feed_subscription_identity"),
    )
    op.create_index("ix_user_feed_subscriptions_account_id", "user_feed_subscriptions", ["account_id"])
    op.create_index(
        "idx_user_feed_subscriptions_identity_active", "user_feed_subscriptions", ["identity_key", "is_active"]
    )

    op.create_table(
        "feed_items",
        sa.Column("feed_item_id", sa.String(36), primary_key=True),
        sa.Column("account_id", sa.String(128), nullable=False),
        sa.Column("feed_item_type", _enum(FEED_ITEM_TYPES, "feeditemtype", 32), nullable=False),
        sa.Column("feed_source", sa.JSON(), nullable=False),
        sa.Column("feed_source_type", _enum(FEED_SOURCE_TYPES, "feedsourcetype", 32), nullable=False),
        sa.Column("user_feed_subscription_id", sa.String(36), nullable=True),
        sa.Column("external_item_id", sa.Text(), nullable=True),
        sa.Column("dedupe_key", sa.String(2300), nullable=True, unique=True),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("outgoing_links", sa.JSON(), nullable=False),
        sa.Column("xkcd", sa.JSON(), nullable=True),
        sa.Column("import_state", sa.JSON(), nullable=False),
        sa.Column("import_status", _enum(IMPORT_STATUSES, "feeditemimportstatus", 32), nullable=False),
        sa.Column("should_fetch", sa.Boolean(), nullable=False),
        sa.Column("revision", sa.Integer(), nullable=False),
        sa.Column("created_time", sa.DateTime(), nullable=False),
        sa.Column("last_updated_time", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_feed_items_account_id", "feed_items", ["account_id"])
    op.create_index("ix_feed_items_user_feed_subscription_id", "feed_items", ["user_feed_subscription_id"])
    op.create_index("idx_feed_items_account_status", "feed_items", ["account_id", "import_status"])

    op.create_table(
        "import_queue",
        sa.Column("import_queue_item_id", sa.String(36), primary_key=True),
        sa.Column("feed_item_id", sa.String(36), nullable=False),
        sa.Column("account_id", sa.String(128), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("status", _enum(QUEUE_STATUSES, "importqueueitemstatus", 32), nullable=False),
        sa.Column("created_time", sa.DateTime(), nullable=False),
        sa.Column("last_updated_time", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_import_queue_feed_item_id", "import_queue", ["feed_item_id"])
    op.create_index("ix_import_queue_account_id", "import_queue", ["account_id"])
    op.create_index("idx_import_queue_status_created", "import_queue", ["status", "created_time"])

    op.create_table(
        "event_log",
        sa.Column("event_id", sa.String(36), primary_key=True),
        sa.Column("account_id", sa.String(128), nullable=False),
        sa.Column("event_type", _enum(EVENT_TYPES, "eventtype", 64), nullable=False),
        sa.Column("actor", sa.JSON(), nullable=False),
        sa.Column("environment", sa.String(32), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("created_time", sa.DateTime(), nullable=False),
        sa.Column("last_updated_time", sa.DateTime(), nullable=False),
    )
    op.create_index("idx_event_log_account_created", "event_log", ["account_id", "created_time"])

    op.create_table(
        "push_registrations",
        sa.Column("url", sa.String(2048), primary_key=True),
        sa.Column("provider", sa.String(32), nullable=False),
        sa.Column("is_registered", sa.Boolean(), nullable=False),
        sa.Column("registered_time", sa.DateTime(), nullable=True),
        sa.Column("deregistered_time", sa.DateTime(), nullable=True),
        sa.Column("last_updated_time", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_push_registrations_is_registered", "push_registrations", ["is_registered"])


def downgrade():
    op.drop_table("push_registrations")
    op.drop_table("event_log")
    op.drop_table("import_queue")
    op.drop_table("feed_items")
    op.drop_table("user_feed_subscriptions")
    op.drop_table("accounts")
