"""One Web Push attempt to one device, with the provider response classified."""
import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum

import requests
from pywebpush import WebPushException, webpush

from livepush.models import Device

log = logging.getLogger(__name__)


class DeliveryOutcome(str, Enum):
    DELIVERED = "delivered"
    RATE_LIMITED = "rate_limited"
    GONE = "gone"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class DeliveryResult:
    outcome: DeliveryOutcome
    status_code: int | None = None
    retry_after: int = 0
    body: str | None = None

    @property
    def delivered(self) -> bool:
        return self.outcome is DeliveryOutcome.DELIVERED

    @property
    def subscription_invalid(self) -> bool:
        """The push service no longer knows this subscription."""
        return self.outcome in (DeliveryOutcome.GONE, DeliveryOutcome.NOT_FOUND)


def parse_retry_after(value: str | int | None, now: datetime | None = None) -> int:
    """
    Retry-After as whole seconds.
    Accepts delta-seconds ("120") or an HTTP date; a date is rounded up and
    a past date, missing or unreadable value gives 0.
    """
    if value is None:
        return 0
    if isinstance(value, int):
        return max(value, 0)
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        log.warning("Unreadable Retry-After header: %r", value)
        return 0
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(math.ceil((when - now).total_seconds()), 0)


class DeliveryClient:
    def __init__(self, vapid_private_key: str, vapid_subject: str, ttl: int = 86400, timeout: float | None = None):
        self.vapid_private_key = vapid_private_key
        self.vapid_claims = {"sub": vapid_subject}
        self.ttl = ttl
        self.timeout = timeout

    def send(self, device: Device, payload: dict) -> DeliveryResult:
        try:
            response = webpush(
                subscription_info=device.subscription_info(),
                data=json.dumps(payload),
                vapid_private_key=self.vapid_private_key,
                # pywebpush fills in `aud` and mutates the dict
                vapid_claims=dict(self.vapid_claims),
                ttl=self.ttl,
                timeout=self.timeout,
            )
        except WebPushException as e:
            return self._classify(device, e)
        except requests.RequestException as e:
            log.error("Push transport failure endpoint=%s: %s", device.endpoint, e)
            return DeliveryResult(DeliveryOutcome.ERROR, body=str(e))
        except (ValueError, TypeError) as e:
            # undecodable subscription keys (binascii.Error is a ValueError)
            log.error("Push could not be encrypted endpoint=%s: %s", device.endpoint, e)
            return DeliveryResult(DeliveryOutcome.ERROR, body=str(e))
        return DeliveryResult(DeliveryOutcome.DELIVERED, status_code=getattr(response, "status_code", None))

    def _classify(self, device: Device, exc: WebPushException) -> DeliveryResult:
        response = exc.response
        if response is None:
            log.error("Push failed without response endpoint=%s: %s", device.endpoint, exc.message)
            return DeliveryResult(DeliveryOutcome.ERROR, body=exc.message)
        status = response.status_code
        body = response.text
        if status == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            log.warning("Hit max requests, retry after %ss", retry_after)
            return DeliveryResult(DeliveryOutcome.RATE_LIMITED, status, retry_after=retry_after, body=body)
        if status == 410:
            return DeliveryResult(DeliveryOutcome.GONE, status, body=body)
        if status == 404:
            return DeliveryResult(DeliveryOutcome.NOT_FOUND, status, body=body)
        log.error("Error sending notification, code %s endpoint=%s body=%s", status, device.endpoint, body)
        return DeliveryResult(DeliveryOutcome.ERROR, status, body=body)
