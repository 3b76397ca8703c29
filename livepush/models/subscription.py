"""Channel <-> device links."""
from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class Subscription(SQLModel, table=True):
    __tablename__ = "push_subscription"
    id: int | None = Field(default=None, primary_key=True)
    channel: str = Field(index=True)
    device_id: str = Field(foreign_key="push_device.endpoint", index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
