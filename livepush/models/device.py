"""Web Push devices; the endpoint URL is the device identity."""
from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class Device(SQLModel, table=True):
    __tablename__ = "push_device"
    endpoint: str = Field(primary_key=True)
    p256dh: str = ""  # client public key (base64url)
    auth: str = ""    # auth secret (base64url)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def subscription_info(self) -> dict:
        """Shape expected by pywebpush."""
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}
