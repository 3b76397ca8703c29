"""Device, subscription and dispatch-ledger storage.

Two interchangeable stores: Hasura over GraphQL (production) and a SQLModel
database (self-hosting, tests). SubscriptionManager is the thin layer the
HTTP boundary and the dispatcher use for subscription changes.
"""
import logging

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from livepush.core.graphql import GraphQLClient
from livepush.models import Device, SentNotification, Subscription

log = logging.getLogger(__name__)


class SubscriptionStore:
    """Contract shared by both backends."""

    def has_dispatch(self, thing_id: str) -> bool:
        raise NotImplementedError

    def mark_handled(self, thing_id: str) -> bool:
        """Insert the ledger row if absent. False means another run already owns the id."""
        raise NotImplementedError

    def set_sent_count(self, thing_id: str, count: int) -> None:
        raise NotImplementedError

    def list_devices(self, channel: str, limit: int, offset: int) -> list[Device]:
        """Devices of a channel ordered by subscription id ascending."""
        raise NotImplementedError

    def create_subscription(self, channel: str, endpoint: str, p256dh: str, auth: str) -> str:
        raise NotImplementedError

    def delete_subscription(self, channel: str, endpoint: str) -> int:
        raise NotImplementedError

    def delete_device(self, endpoint: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


HAS_DISPATCH = """
query getNotification($id: String!) {
  push_sent_notification_by_pk(thing_id: $id) {
    thing_id
  }
}
"""

MARK_HANDLED = """
mutation markHandled($id: String!) {
  insert_push_sent_notification_one(
    object: { thing_id: $id }
    on_conflict: { constraint: push_sent_notification_pkey, update_columns: [] }
  ) {
    thing_id
  }
}
"""

SET_SENT_COUNT = """
mutation setNotificationSentCount($id: String!, $count: Int!) {
  update_push_sent_notification_by_pk(
    pk_columns: { thing_id: $id }
    _set: { subscriptions: $count }
  ) {
    thing_id
  }
}
"""

GET_DEVICES = """
query getDevices($channel: String!, $pageSize: Int!, $offset: Int = 0) {
  push_subscription(
    where: { channel: { _eq: $channel } }
    limit: $pageSize
    offset: $offset
    order_by: { id: asc }
  ) {
    device {
      endpoint
      p256dh
      auth
    }
  }
}
"""

ADD_SUBSCRIPTION = """
mutation addSubscription(
  $channel: String!
  $deviceEndpoint: String!
  $deviceAuth: String!
  $deviceDh: String!
) {
  insert_push_subscription_one(
    object: {
      channel: $channel
      device: {
        data: { endpoint: $deviceEndpoint, auth: $deviceAuth, p256dh: $deviceDh }
        on_conflict: {
          constraint: device_pkey
          where: { endpoint: { _eq: $deviceEndpoint } }
          update_columns: [auth, p256dh]
        }
      }
    }
  ) {
    id
  }
}
"""

DELETE_SUBSCRIPTION = """
mutation deleteSubscription($channel: String!, $endpoint: String!) {
  delete_push_subscription(
    where: { channel: { _eq: $channel }, device_id: { _eq: $endpoint } }
  ) {
    affected_rows
  }
}
"""

DELETE_DEVICE = """
mutation deleteDevice($endpoint: String!) {
  delete_push_subscription(where: { device_id: { _eq: $endpoint } }) {
    affected_rows
  }
  delete_push_device_by_pk(endpoint: $endpoint) {
    endpoint
  }
}
"""


class GraphQLSubscriptionStore(SubscriptionStore):
    def __init__(self, client: GraphQLClient):
        self.client = client

    def has_dispatch(self, thing_id: str) -> bool:
        data = self.client.request(HAS_DISPATCH, {"id": thing_id})
        return data.get("push_sent_notification_by_pk") is not None

    def mark_handled(self, thing_id: str) -> bool:
        data = self.client.request(MARK_HANDLED, {"id": thing_id})
        # null when the on_conflict clause swallowed the insert
        return data.get("insert_push_sent_notification_one") is not None

    def set_sent_count(self, thing_id: str, count: int) -> None:
        self.client.request(SET_SENT_COUNT, {"id": thing_id, "count": count})

    def list_devices(self, channel: str, limit: int, offset: int) -> list[Device]:
        data = self.client.request(GET_DEVICES, {"channel": channel, "pageSize": limit, "offset": offset})
        return [
            Device(endpoint=row["device"]["endpoint"], p256dh=row["device"]["p256dh"], auth=row["device"]["auth"])
            for row in data.get("push_subscription") or []
        ]

    def create_subscription(self, channel: str, endpoint: str, p256dh: str, auth: str) -> str:
        data = self.client.request(
            ADD_SUBSCRIPTION,
            {"channel": channel, "deviceEndpoint": endpoint, "deviceAuth": auth, "deviceDh": p256dh},
        )
        return str(data["insert_push_subscription_one"]["id"])

    def delete_subscription(self, channel: str, endpoint: str) -> int:
        data = self.client.request(DELETE_SUBSCRIPTION, {"channel": channel, "endpoint": endpoint})
        return (data.get("delete_push_subscription") or {}).get("affected_rows", 0)

    def delete_device(self, endpoint: str) -> None:
        self.client.request(DELETE_DEVICE, {"endpoint": endpoint})

    def close(self) -> None:
        self.client.close()


class SqlSubscriptionStore(SubscriptionStore):
    def __init__(self, engine: Engine):
        self.engine = engine

    def has_dispatch(self, thing_id: str) -> bool:
        with Session(self.engine) as db:
            return db.get(SentNotification, thing_id) is not None

    def mark_handled(self, thing_id: str) -> bool:
        with Session(self.engine) as db:
            db.add(SentNotification(thing_id=thing_id))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                return False
        return True

    def set_sent_count(self, thing_id: str, count: int) -> None:
        with Session(self.engine) as db:
            record = db.get(SentNotification, thing_id)
            if record is None:
                log.warning("No dispatch record for %s; sent count %d not stored", thing_id, count)
                return
            record.subscriptions = count
            db.add(record)
            db.commit()

    def list_devices(self, channel: str, limit: int, offset: int) -> list[Device]:
        stmt = (
            select(Device)
            .join(Subscription, Subscription.device_id == Device.endpoint)
            .where(Subscription.channel == channel)
            .order_by(Subscription.id)
            .offset(offset)
            .limit(limit)
        )
        with Session(self.engine) as db:
            return list(db.exec(stmt).all())

    def create_subscription(self, channel: str, endpoint: str, p256dh: str, auth: str) -> str:
        with Session(self.engine) as db:
            device = db.get(Device, endpoint)
            if device is None:
                device = Device(endpoint=endpoint, p256dh=p256dh, auth=auth)
            else:
                device.p256dh = p256dh
                device.auth = auth
            db.add(device)
            existing = db.exec(
                select(Subscription).where(Subscription.channel == channel, Subscription.device_id == endpoint)
            ).first()
            if existing is not None:
                db.commit()
                return str(existing.id)
            subscription = Subscription(channel=channel, device_id=endpoint)
            db.add(subscription)
            db.commit()
            db.refresh(subscription)
            return str(subscription.id)

    def delete_subscription(self, channel: str, endpoint: str) -> int:
        with Session(self.engine) as db:
            rows = db.exec(
                select(Subscription).where(Subscription.channel == channel, Subscription.device_id == endpoint)
            ).all()
            for row in rows:
                db.delete(row)
            db.commit()
            return len(rows)

    def delete_device(self, endpoint: str) -> None:
        with Session(self.engine) as db:
            for row in db.exec(select(Subscription).where(Subscription.device_id == endpoint)).all():
                db.delete(row)
            device = db.get(Device, endpoint)
            if device is not None:
                db.delete(device)
            db.commit()

    def close(self) -> None:
        self.engine.dispose()


class SubscriptionManager:
    def __init__(self, store: SubscriptionStore):
        self.store = store

    def subscribe(self, channel: str, endpoint: str, p256dh: str, auth: str) -> str:
        """Upsert the device by endpoint (keys refreshed) and link it to the channel."""
        subscription_id = self.store.create_subscription(channel, endpoint, p256dh, auth)
        log.info("Subscribed channel=%s subscription_id=%s", channel, subscription_id)
        return subscription_id

    def unsubscribe(self, channel: str, endpoint: str) -> int:
        affected = self.store.delete_subscription(channel, endpoint)
        log.info("Unsubscribed channel=%s affected_rows=%d", channel, affected)
        return affected

    def prune_device(self, endpoint: str) -> None:
        """Drop every subscription of the device, then the device itself."""
        self.store.delete_device(endpoint)
        log.info("Pruned device endpoint=%s", endpoint)
