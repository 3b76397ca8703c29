"""push tables

Devices, channel subscriptions and the sent-notification ledger used by
the sql store backend.

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


revision: str = "0001_push_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "push_device",
        sa.Column("endpoint", sa.String(), primary_key=True),
        sa.Column("p256dh", sa.String(), nullable=False),
        sa.Column("auth", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "push_subscription",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("channel", sa.String(), nullable=False),
        sa.Column("device_id", sa.String(), sa.ForeignKey("push_device.endpoint"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_push_subscription_channel", "push_subscription", ["channel"])
    op.create_index("ix_push_subscription_device_id", "push_subscription", ["device_id"])
    op.create_table(
        "push_sent_notification",
        sa.Column("thing_id", sa.String(), primary_key=True),
        sa.Column("subscriptions", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("push_sent_notification")
    op.drop_index("ix_push_subscription_device_id", table_name="push_subscription")
    op.drop_index("ix_push_subscription_channel", table_name="push_subscription")
    op.drop_table("push_subscription")
    op.drop_table("push_device")
