"""Per-IP rate limiting (SlowAPI) for the subscription endpoints."""
from fastapi import Request

from slowapi import Limiter

from livepush.core.config import Settings, settings

_per_minute = settings.rate_limit_per_minute


def _get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


def configure_rate_limit(app_settings: Settings) -> None:
    """Applies to every app in the process; the last configured app wins."""
    global _per_minute
    _per_minute = app_settings.rate_limit_per_minute


def subscription_rate_limit() -> str:
    # evaluated on each request by SlowAPI
    return f"{_per_minute}/minute"


limiter = Limiter(key_func=_get_client_ip)
