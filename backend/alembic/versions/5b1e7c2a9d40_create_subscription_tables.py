"""create_subscription_tables

Revision ID: 5b1e7c2a9d40
Revises:
Create Date: 2026-03-02 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5b1e7c2a9d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Enum values are stored as plain strings (non-native enums)
    op.create_table(
        "subscriptions",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("billing_cycle", sa.String(20), nullable=False),
        sa.Column("next_billing_date", sa.Date(), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("user_id", sa.UUID(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("price >= 0", name="ck_subscriptions_price_non_negative"),
    )
    op.create_index("ix_subscriptions_next_billing_date", "subscriptions", ["next_billing_date"])
    op.create_index("ix_subscriptions_status", "subscriptions", ["status"])
    op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"])
    op.create_index("ix_subscriptions_user_status", "subscriptions", ["user_id", "status"])
    op.create_index("ix_subscriptions_status_next_billing", "subscriptions", ["status", "next_billing_date"])

    # No FK to subscriptions: history is kept after a subscription is deleted
    op.create_table(
        "billing_histories",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("subscription_id", sa.UUID(), nullable=False),
        sa.Column("amount_paid", sa.BigInteger(), nullable=False),
        sa.Column("paid_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_paid >= 0", name="ck_billing_histories_amount_non_negative"),
    )
    op.create_index("ix_billing_histories_subscription_id", "billing_histories", ["subscription_id"])
    op.create_index("ix_billing_histories_paid_at", "billing_histories", ["paid_at"])
    op.create_index(
        "ix_billing_histories_subscription_paid_at", "billing_histories", ["subscription_id", "paid_at"]
    )

    op.create_table(
        "webhook_configs",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("user_id", sa.UUID(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("url", sa.String(500), nullable=False),
        sa.Column("secret", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_webhook_configs_user_id", "webhook_configs", ["user_id"])
    op.create_index("ix_webhook_configs_is_active", "webhook_configs", ["is_active"])


def downgrade() -> None:
    op.drop_index("ix_webhook_configs_is_active", table_name="webhook_configs")
    op.drop_index("ix_webhook_configs_user_id", table_name="webhook_configs")
    op.drop_table("webhook_configs")
    op.drop_index("ix_billing_histories_subscription_paid_at", table_name="billing_histories")
    op.drop_index("ix_billing_histories_paid_at", table_name="billing_histories")
    op.drop_index("ix_billing_histories_subscription_id", table_name="billing_histories")
    op.drop_table("billing_histories")
    op.drop_index("ix_subscriptions_status_next_billing", table_name="subscriptions")
    op.drop_index("ix_subscriptions_user_status", table_name="subscriptions")
    op.drop_index("ix_subscriptions_user_id", table_name="subscriptions")
    op.drop_index("ix_subscriptions_status", table_name="subscriptions")
    op.drop_index("ix_subscriptions_next_billing_date", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
