"""create chat wallet tables

Revision ID: 7c4e1b2d9a10
Revises:
Create Date: 2026-10-16 09:12:41.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '7c4e1b2d9a10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _id() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def upgrade() -> None:
    op.create_table(
        "conversation_contexts",
        _id(),
        sa.Column("session_id", sa.String(length=128), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=True),
        sa.Column("pending_action", postgresql.JSONB(), nullable=True),
        sa.Column("last_intent", sa.String(length=64), nullable=True),
        sa.Column("history", postgresql.JSONB(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_conversation_contexts_session_id", "conversation_contexts", ["session_id"], unique=True)
    op.create_index("ix_conversation_contexts_user_id", "conversation_contexts", ["user_id"])

    op.create_table(
        "scheduled_payments",
        _id(),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("wallet_id", sa.String(length=128), nullable=True),
        sa.Column("wallet_address", sa.String(length=64), nullable=True),
        sa.Column("amount", sa.Numeric(20, 6), nullable=False),
        sa.Column("currency", sa.String(length=16), nullable=False),
        sa.Column("to_address", sa.String(length=64), nullable=False),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transaction_hash", sa.String(length=128), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_scheduled_payments_user_id", "scheduled_payments", ["user_id"])
    op.create_index("ix_scheduled_payments_scheduled_for", "scheduled_payments", ["scheduled_for"])
    op.create_index("idx_scheduled_payments_status_due", "scheduled_payments", ["status", "scheduled_for"])

    op.create_table(
        "subscriptions",
        _id(),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("merchant", sa.String(length=128), nullable=False),
        sa.Column("amount", sa.Numeric(20, 6), nullable=False),
        sa.Column("currency", sa.String(length=16), nullable=False),
        sa.Column("frequency", sa.String(length=16), nullable=False),
        sa.Column("next_charge_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("auto_renew", sa.Boolean(), nullable=False),
        sa.Column("remind_before_seconds", sa.Integer(), nullable=False),
        sa.Column("paused", sa.Boolean(), nullable=False),
        sa.Column("last_reminder_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"])
    op.create_index("ix_subscriptions_next_charge_at", "subscriptions", ["next_charge_at"])

    op.create_table(
        "savings_goals",
        _id(),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("target_amount", sa.Numeric(20, 6), nullable=False),
        sa.Column("current_amount", sa.Numeric(20, 6), nullable=False),
        sa.Column("currency", sa.String(length=16), nullable=False),
        sa.Column("lock_period", sa.String(length=16), nullable=True),
        sa.Column("apy", sa.Numeric(6, 2), nullable=True),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_completed", sa.Boolean(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_savings_goals_user_id", "savings_goals", ["user_id"])

    op.create_table(
        "safe_locks",
        _id(),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("amount", sa.Numeric(20, 6), nullable=False),
        sa.Column("currency", sa.String(length=16), nullable=False),
        sa.Column("apy", sa.Numeric(6, 2), nullable=False),
        sa.Column("unlock_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_safe_locks_user_id", "safe_locks", ["user_id"])

    op.create_table(
        "limit_orders",
        _id(),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("side", sa.String(length=8), nullable=False),
        sa.Column("from_token", sa.String(length=16), nullable=False),
        sa.Column("to_token", sa.String(length=16), nullable=False),
        sa.Column("amount", sa.Numeric(20, 6), nullable=False),
        sa.Column("target_price", sa.Numeric(20, 6), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_limit_orders_user_id", "limit_orders", ["user_id"])

    op.create_table(
        "user_settings",
        _id(),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("currency_preference", sa.String(length=8), nullable=False),
        sa.Column("language", sa.String(length=8), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("notifications_enabled", sa.Boolean(), nullable=False),
        sa.Column("transaction_notifications", sa.Boolean(), nullable=False),
        sa.Column("balance_notifications", sa.Boolean(), nullable=False),
        sa.Column("security_alerts", sa.Boolean(), nullable=False),
        sa.Column("auto_approve_payments", sa.Boolean(), nullable=False),
        sa.Column("auto_approve_limit", sa.Numeric(20, 6), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", name="uq_user_settings_user_id"),
    )

    op.create_table(
        "contacts",
        _id(),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("name_key", sa.String(length=64), nullable=False),
        sa.Column("address", sa.String(length=64), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "name_key", name="uq_contacts_user_name"),
    )
    op.create_index("ix_contacts_user_id", "contacts", ["user_id"])

    op.create_table(
        "address_history",
        _id(),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("address", sa.String(length=64), nullable=False),
        sa.Column("transaction_count", sa.Integer(), nullable=False),
        sa.Column("first_seen_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "address", name="uq_address_history_user_address"),
    )
    op.create_index("ix_address_history_user_id", "address_history", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_address_history_user_id", table_name="address_history")
    op.drop_table("address_history")
    op.drop_index("ix_contacts_user_id", table_name="contacts")
    op.drop_table("contacts")
    op.drop_table("user_settings")
    op.drop_index("ix_limit_orders_user_id", table_name="limit_orders")
    op.drop_table("limit_orders")
    op.drop_index("ix_safe_locks_user_id", table_name="safe_locks")
    op.drop_table("safe_locks")
    op.drop_index("ix_savings_goals_user_id", table_name="savings_goals")
    op.drop_table("savings_goals")
    op.drop_index("ix_subscriptions_next_charge_at", table_name="subscriptions")
    op.drop_index("ix_subscriptions_user_id", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("idx_scheduled_payments_status_due", table_name="scheduled_payments")
    op.drop_index("ix_scheduled_payments_scheduled_for", table_name="scheduled_payments")
    op.drop_index("ix_scheduled_payments_user_id", table_name="scheduled_payments")
    op.drop_table("scheduled_payments")
    op.drop_index("ix_conversation_contexts_user_id", table_name="conversation_contexts")
    op.drop_index("ix_conversation_contexts_session_id", table_name="conversation_contexts")
    op.drop_table("conversation_contexts")
