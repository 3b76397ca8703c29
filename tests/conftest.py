"""Pytest fixtures: in-memory SQLite store, fake content store, recorded pushes, test client."""
import base64
import os

import pytest
import pywebpush
import requests
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi.testclient import TestClient
from pywebpush import WebPushException

# Must be set before livepush is imported (module-level settings / rate limits)
os.environ.setdefault("VAPID_PUBLIC_KEY", "test-vapid-public")
os.environ.setdefault("VAPID_PRIVATE_KEY", "test-vapid-private")
os.environ.setdefault("HASURA_SECRET", "test-hasura-secret")
os.environ.setdefault("STORE_BACKEND", "sql")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")

from livepush.core.config import Settings
from livepush.core.database import create_db_engine, init_db
from livepush.core.errors import UpdateNotFound
from livepush.main import create_app
from livepush.services.content import LiveUpdate
from livepush.services.delivery import DeliveryClient
from livepush.services.subscriptions import SqlSubscriptionStore


class FakeContentStore:
    """Stands in for the bunker GraphQL API."""

    def __init__(self):
        self.updates: dict[str, LiveUpdate] = {}
        self.lookups: list[str] = []

    def add(self, update_id: str, event_slug: str = "sports-final", status: str = "published",
            major_text: str | None = "Full time: 2-1", event_title: str = "Sports Final") -> LiveUpdate:
        update = LiveUpdate(update_id, status, major_text, event_slug, event_title)
        self.updates[update_id] = update
        return update

    def get_update(self, update_id: str) -> LiveUpdate:
        self.lookups.append(update_id)
        if update_id not in self.updates:
            raise UpdateNotFound(update_id)
        return self.updates[update_id]


class PushRecorder:
    """Replaces pywebpush.webpush; `failures[endpoint]` is raised instead of delivering.

    Endpoints in `real` go through the actual pywebpush code (encryption and
    VAPID signing), which only makes sense for devices that fail before any
    request is sent.
    """

    def __init__(self):
        self.calls: list[dict] = []
        self.failures: dict[str, Exception] = {}
        self.real: set[str] = set()

    def __call__(self, subscription_info, data=None, **kwargs):
        self.calls.append({"subscription_info": subscription_info, "data": data, **kwargs})
        if subscription_info["endpoint"] in self.real:
            return pywebpush.webpush(subscription_info, data=data, **kwargs)
        failure = self.failures.get(subscription_info["endpoint"])
        if failure is not None:
            raise failure

    @property
    def endpoints(self) -> list[str]:
        return [c["subscription_info"]["endpoint"] for c in self.calls]


def _push_error(status_code: int, headers: dict | None = None, body: str = "") -> WebPushException:
    response = requests.Response()
    response.status_code = status_code
    response.headers.update(headers or {})
    response._content = body.encode()
    response.encoding = "utf-8"
    return WebPushException(f"Push failed: {status_code}", response=response)


def _endpoint(n: int) -> str:
    return f"https://push.example.com/send/device-{n}"


@pytest.fixture
def push_error():
    """Factory for WebPushException carrying a push-service response."""
    return _push_error


@pytest.fixture
def endpoint():
    return _endpoint


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite:///:memory:")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return SqlSubscriptionStore(engine)


@pytest.fixture
def content():
    return FakeContentStore()


@pytest.fixture
def pushes(monkeypatch):
    recorder = PushRecorder()
    monkeypatch.setattr("livepush.services.delivery.webpush", recorder)
    return recorder


@pytest.fixture
def delivery(pushes):
    return DeliveryClient("test-vapid-private", "mailto:test@example.com")


@pytest.fixture(scope="session")
def vapid_private_key():
    """A usable VAPID key in the raw base64url form VAPID_PRIVATE_KEY takes."""
    key = ec.generate_private_key(ec.SECP256R1())
    raw = key.private_numbers().private_value.to_bytes(32, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def test_settings():
    return Settings(
        vapid_public_key="test-vapid-public",
        vapid_private_key="test-vapid-private",
        hasura_secret="test-hasura-secret",
        store_backend="sql",
        database_url="sqlite:///:memory:",
    )


@pytest.fixture
def client(test_settings, content, store, delivery, sleeps):
    """TestClient; background tasks finish before each call returns."""
    app = create_app(
        settings=test_settings,
        content_store=content,
        subscription_store=store,
        delivery_client=delivery,
        sleep=sleeps.append,
    )
    with TestClient(app) as c:
        yield c
