from .push import (
    AckResponse,
    DeviceIn,
    DeviceKeys,
    SubscribeRequest,
    SubscribeResponse,
    UnsubscribeRequest,
    WebhookRequest,
)

__all__ = [
    "AckResponse",
    "DeviceIn",
    "DeviceKeys",
    "SubscribeRequest",
    "SubscribeResponse",
    "UnsubscribeRequest",
    "WebhookRequest",
]
