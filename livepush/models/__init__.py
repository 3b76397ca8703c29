from .device import Device
from .sent_notification import SentNotification
from .subscription import Subscription

__all__ = [
    "Device",
    "SentNotification",
    "Subscription",
]
