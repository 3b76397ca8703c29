"""Page-at-a-time walk over the devices subscribed to a channel."""
from dataclasses import dataclass, field

from livepush.models import Device
from livepush.services.subscriptions import SubscriptionStore

PAGE_SIZE = 20


@dataclass
class Page:
    devices: list[Device] = field(default_factory=list)
    has_more: bool = False


class DevicePaginator:
    """Cursor over one channel; build a fresh one for every dispatch run.

    The offset advances by the number of rows actually returned and the walk
    stops at the first page shorter than `page_size` (an empty page included).
    """

    def __init__(self, store: SubscriptionStore, channel: str, page_size: int = PAGE_SIZE):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.store = store
        self.channel = channel
        self.page_size = page_size
        self.offset = 0
        self.exhausted = False

    def next_page(self) -> Page:
        if self.exhausted:
            return Page()
        devices = self.store.list_devices(self.channel, self.page_size, self.offset)
        self.offset += len(devices)
        has_more = len(devices) == self.page_size
        self.exhausted = not has_more
        return Page(devices=devices, has_more=has_more)

    def __iter__(self):
        while not self.exhausted:
            page = self.next_page()
            if page.devices:
                yield page.devices
