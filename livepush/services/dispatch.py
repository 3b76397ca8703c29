"""Notification run for one live update: eligibility, dedup, fan-out, bookkeeping."""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from livepush.models import Device
from livepush.services.content import ContentStore
from livepush.services.delivery import DeliveryClient, DeliveryOutcome, DeliveryResult
from livepush.services.paginator import PAGE_SIZE, DevicePaginator
from livepush.services.subscriptions import SubscriptionManager, SubscriptionStore

log = logging.getLogger(__name__)

PAYLOAD_TYPE = "live-update"


class DispatchState(str, Enum):
    IDLE = "idle"
    CHECKING_ELIGIBILITY = "checking_eligibility"
    CHECKING_DEDUP = "checking_dedup"
    MARKING_HANDLED = "marking_handled"
    FANNING_OUT = "fanning_out"
    FINALIZING = "finalizing"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class DispatchResult:
    update_id: str
    state: DispatchState = DispatchState.IDLE
    abort_reason: str | None = None
    channel: str | None = None
    sent: int = 0
    attempted: int = 0
    pruned: int = 0


def build_payload(update_id: str, event_slug: str, event_title: str, major_text: str) -> dict:
    return {
        "type": PAYLOAD_TYPE,
        "eventSlug": event_slug,
        "updateId": update_id,
        "eventTitle": event_title,
        "majorText": major_text,
    }


class DispatchEngine:
    """Runs are strictly sequential per device so one 429 throttles the whole run.

    The ledger row is written before the first device is contacted; a crash
    mid fan-out therefore loses the remaining deliveries rather than
    notifying everyone twice on a retried webhook.
    """

    def __init__(
        self,
        content: ContentStore,
        store: SubscriptionStore,
        delivery: DeliveryClient,
        page_size: int = PAGE_SIZE,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.content = content
        self.store = store
        self.delivery = delivery
        self.subscriptions = SubscriptionManager(store)
        self.page_size = page_size
        self.sleep = sleep

    def run(self, update_id: str) -> DispatchResult:
        """Raises UpdateNotFound when the content store has no such update."""
        result = DispatchResult(update_id=update_id)

        result.state = DispatchState.CHECKING_ELIGIBILITY
        eligible, channel, title, text = self.content.get_update(update_id).criteria()
        result.channel = channel
        if not eligible:
            return self._abort(result, "not eligible")

        result.state = DispatchState.CHECKING_DEDUP
        if self.store.has_dispatch(update_id):
            return self._abort(result, "already sent")

        result.state = DispatchState.MARKING_HANDLED
        if not self.store.mark_handled(update_id):
            return self._abort(result, "claimed by another run")

        result.state = DispatchState.FANNING_OUT
        payload = build_payload(update_id, channel, title, text)
        invalid: list[Device] = []
        # a 429 pauses before the next attempt; none is owed after the last device
        pause = 0
        for devices in DevicePaginator(self.store, channel, self.page_size):
            for device in devices:
                if pause:
                    log.warning("Pausing dispatch of %s for %ss", update_id, pause)
                    self.sleep(pause)
                pause = 0
                outcome = self._deliver(device, payload, result)
                if outcome.outcome is DeliveryOutcome.RATE_LIMITED:
                    pause = outcome.retry_after
                elif outcome.subscription_invalid:
                    invalid.append(device)
        # pruning after the walk keeps the offsets of later pages stable
        for device in invalid:
            self._prune(device, result)

        result.state = DispatchState.FINALIZING
        self.store.set_sent_count(update_id, result.sent)
        result.state = DispatchState.DONE
        log.info(
            "Dispatched update=%s channel=%s sent=%d attempted=%d pruned=%d",
            update_id,
            channel,
            result.sent,
            result.attempted,
            result.pruned,
        )
        return result

    def _deliver(self, device: Device, payload: dict, result: DispatchResult) -> DeliveryResult:
        result.attempted += 1
        outcome = self.delivery.send(device, payload)
        if outcome.delivered:
            result.sent += 1
        return outcome

    def _prune(self, device: Device, result: DispatchResult) -> None:
        try:
            self.subscriptions.prune_device(device.endpoint)
            result.pruned += 1
        except Exception:
            # never aborts the run
            log.exception("Failed to prune device endpoint=%s", device.endpoint)

    @staticmethod
    def _abort(result: DispatchResult, reason: str) -> DispatchResult:
        result.state = DispatchState.ABORTED
        result.abort_reason = reason
        log.info("Skipping update=%s: %s", result.update_id, reason)
        return result
