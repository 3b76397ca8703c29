"""Dispatch ledger: one row per notified update id."""
from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class SentNotification(SQLModel, table=True):
    """Created before the first delivery; `subscriptions` holds the final sent count."""
    __tablename__ = "push_sent_notification"
    thing_id: str = Field(primary_key=True)
    subscriptions: int | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
