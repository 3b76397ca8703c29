import base64
import binascii
import re

from pydantic import AnyUrl, BaseModel, Field, TypeAdapter, ValidationError, field_validator

_uri = TypeAdapter(AnyUrl)
_BASE64URL = re.compile(r"^[A-Za-z0-9_-]+={0,2}$")


def _check_base64url(v: str) -> str:
    if not _BASE64URL.match(v):
        raise ValueError("must be base64url encoded")
    try:
        base64.urlsafe_b64decode(v.rstrip("=") + "=" * (-len(v.rstrip("=")) % 4))
    except binascii.Error:
        raise ValueError("must be base64url encoded") from None
    return v


def _check_uri(v: str) -> str:
    # validate only; the endpoint is stored exactly as the browser sent it
    try:
        _uri.validate_python(v)
    except ValidationError:
        raise ValueError("must be a valid URI") from None
    return v


class WebhookRequest(BaseModel):
    """Publishing webhook: `item` is the live update id."""
    item: str = Field(min_length=1)


class DeviceKeys(BaseModel):
    auth: str = Field(min_length=1)
    p256dh: str = Field(min_length=1)

    @field_validator("auth", "p256dh")
    @classmethod
    def keys_are_base64url(cls, v: str) -> str:
        return _check_base64url(v)


class DeviceIn(BaseModel):
    """PushSubscription.toJSON() from the browser."""
    endpoint: str
    keys: DeviceKeys

    @field_validator("endpoint")
    @classmethod
    def endpoint_is_uri(cls, v: str) -> str:
        return _check_uri(v)


class SubscribeRequest(BaseModel):
    channel: str = Field(min_length=1)
    device: DeviceIn


class SubscribeResponse(BaseModel):
    subscriptionId: str


class UnsubscribeRequest(BaseModel):
    channel: str = Field(min_length=1)
    endpoint: str

    @field_validator("endpoint")
    @classmethod
    def endpoint_is_uri(cls, v: str) -> str:
        return _check_uri(v)


class AckResponse(BaseModel):
    ok: bool = True
