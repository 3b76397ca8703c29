"""GraphQL transport and the Hasura/bunker stores against a mocked HTTP transport."""
import json

import httpx
import pytest

from livepush.core.errors import StoreError, UpdateNotFound
from livepush.core.graphql import GraphQLClient
from livepush.services.content import ContentStore
from livepush.services.subscriptions import GraphQLSubscriptionStore


class FakeGraphQL:
    """httpx handler answering each request with the next queued `data` payload."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[dict] = []
        self.headers: list[httpx.Headers] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        self.headers.append(request.headers)
        status, body = self.responses.pop(0)
        return httpx.Response(status, json=body)

    def client(self, **kwargs) -> GraphQLClient:
        return GraphQLClient("https://graphql.test/v1/graphql", transport=httpx.MockTransport(self), **kwargs)


def test_request_returns_data_and_sends_headers():
    fake = FakeGraphQL((200, {"data": {"ok": True}}))
    client = fake.client(headers={"x-hasura-admin-secret": "s3cret"})
    assert client.request("query { ok }", {"a": 1}) == {"ok": True}
    assert fake.requests[0] == {"query": "query { ok }", "variables": {"a": 1}}
    assert fake.headers[0]["x-hasura-admin-secret"] == "s3cret"


def test_graphql_errors_raise_store_error():
    fake = FakeGraphQL((200, {"errors": [{"message": "field not found"}], "data": None}))
    with pytest.raises(StoreError, match="field not found") as exc:
        fake.client().request("query { nope }")
    assert exc.value.errors == [{"message": "field not found"}]


def test_http_error_raises_store_error():
    fake = FakeGraphQL((503, {"message": "unavailable"}))
    with pytest.raises(StoreError) as exc:
        fake.client().request("query { ok }")
    assert exc.value.status_code == 503


def test_transport_error_raises_store_error():
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    client = GraphQLClient("https://graphql.test", transport=httpx.MockTransport(refuse))
    with pytest.raises(StoreError):
        client.request("query { ok }")


def test_content_store_reads_update():
    fake = FakeGraphQL(
        (200, {"data": {"items": {"live_updates": [
            {"major_text": "Goal!", "status": "published", "event": {"slug": "cup-final", "title": "Cup Final"}}
        ]}}})
    )
    update = ContentStore(fake.client()).get_update("17")
    assert fake.requests[0]["variables"] == {"id": "17"}
    assert update.criteria() == (True, "cup-final", "Cup Final", "Goal!")


@pytest.mark.parametrize("items", [{"live_updates": []}, {"live_updates": None}, None])
def test_content_store_not_found(items):
    fake = FakeGraphQL((200, {"data": {"items": items}}))
    with pytest.raises(UpdateNotFound) as exc:
        ContentStore(fake.client()).get_update("17")
    assert exc.value.update_id == "17"


def test_store_dispatch_ledger_calls():
    fake = FakeGraphQL(
        (200, {"data": {"push_sent_notification_by_pk": None}}),
        (200, {"data": {"insert_push_sent_notification_one": {"thing_id": "17"}}}),
        (200, {"data": {"insert_push_sent_notification_one": None}}),
        (200, {"data": {"update_push_sent_notification_by_pk": {"thing_id": "17"}}}),
    )
    store = GraphQLSubscriptionStore(fake.client())
    assert store.has_dispatch("17") is False
    assert store.mark_handled("17") is True
    assert store.mark_handled("17") is False
    store.set_sent_count("17", 5)
    assert "on_conflict" in fake.requests[1]["query"]
    assert fake.requests[3]["variables"] == {"id": "17", "count": 5}


def test_store_lists_devices_with_paging_variables():
    fake = FakeGraphQL(
        (200, {"data": {"push_subscription": [
            {"device": {"endpoint": "https://push.test/1", "p256dh": "p1", "auth": "a1"}},
            {"device": {"endpoint": "https://push.test/2", "p256dh": "p2", "auth": "a2"}},
        ]}})
    )
    devices = GraphQLSubscriptionStore(fake.client()).list_devices("cup-final", 20, 40)
    assert fake.requests[0]["variables"] == {"channel": "cup-final", "pageSize": 20, "offset": 40}
    assert [(d.endpoint, d.p256dh, d.auth) for d in devices] == [
        ("https://push.test/1", "p1", "a1"),
        ("https://push.test/2", "p2", "a2"),
    ]


def test_store_subscription_mutations():
    fake = FakeGraphQL(
        (200, {"data": {"insert_push_subscription_one": {"id": 81}}}),
        (200, {"data": {"delete_push_subscription": {"affected_rows": 0}}}),
        (200, {"data": {"delete_push_subscription": {"affected_rows": 2}, "delete_push_device_by_pk": None}}),
    )
    store = GraphQLSubscriptionStore(fake.client())
    assert store.create_subscription("cup-final", "https://push.test/1", "pub", "auth") == "81"
    assert fake.requests[0]["variables"] == {
        "channel": "cup-final",
        "deviceEndpoint": "https://push.test/1",
        "deviceAuth": "auth",
        "deviceDh": "pub",
    }
    assert store.delete_subscription("cup-final", "https://push.test/9") == 0
    store.delete_device("https://push.test/1")
    assert fake.requests[2]["variables"] == {"endpoint": "https://push.test/1"}
    assert "device_id: { _eq: $endpoint }" in fake.requests[2]["query"]
