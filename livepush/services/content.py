"""Live update lookup in the content store (bunker)."""
from dataclasses import dataclass

from livepush.core.errors import UpdateNotFound
from livepush.core.graphql import GraphQLClient

PUBLISHED = "published"

GET_UPDATE = """
query getUpdate($id: ID!) {
  items {
    live_updates(filter: { id: { _eq: $id } }, limit: 1) {
      major_text
      status
      event {
        slug
        title
      }
    }
  }
}
"""


@dataclass(frozen=True)
class LiveUpdate:
    id: str
    status: str | None
    major_text: str | None
    event_slug: str
    event_title: str

    @property
    def is_eligible(self) -> bool:
        """Published and carrying non-blank body text."""
        return bool(self.major_text and self.major_text.strip()) and self.status == PUBLISHED

    def criteria(self) -> tuple[bool, str, str, str | None]:
        """(is_eligible, channel, title, body); the channel of a live update is its event slug."""
        return self.is_eligible, self.event_slug, self.event_title, self.major_text


class ContentStore:
    def __init__(self, client: GraphQLClient):
        self.client = client

    def get_update(self, update_id: str) -> LiveUpdate:
        data = self.client.request(GET_UPDATE, {"id": update_id})
        updates = (data.get("items") or {}).get("live_updates")
        if not updates:
            raise UpdateNotFound(update_id)
        update = updates[0]
        event = update.get("event") or {}
        return LiveUpdate(
            id=update_id,
            status=update.get("status"),
            major_text=update.get("major_text"),
            event_slug=event.get("slug") or "",
            event_title=event.get("title") or "",
        )
