"""Publishing webhook and browser subscription endpoints."""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from livepush.api.deps import get_dispatch_engine, get_subscription_manager
from livepush.core.errors import UpdateNotFound
from livepush.core.rate_limit import limiter, subscription_rate_limit
from livepush.schemas import (
    AckResponse,
    SubscribeRequest,
    SubscribeResponse,
    UnsubscribeRequest,
    WebhookRequest,
)
from livepush.services.dispatch import DispatchEngine
from livepush.services.subscriptions import SubscriptionManager

log = logging.getLogger(__name__)

router = APIRouter(tags=["push"])


def run_dispatch(engine: DispatchEngine, update_id: str) -> None:
    """Background task: nobody is waiting on the response, so failures end up in the log only."""
    try:
        engine.run(update_id)
    except UpdateNotFound:
        log.error("Webhook for unknown live update %s; nothing dispatched", update_id)
    except Exception:
        log.exception("Dispatch failed for update %s", update_id)


def run_unsubscribe(manager: SubscriptionManager, channel: str, endpoint: str) -> None:
    try:
        manager.unsubscribe(channel, endpoint)
    except Exception:
        log.exception("Unsubscribe failed for channel %s", channel)


@router.post("/webhook/live", response_model=AckResponse)
def live_webhook(
    body: WebhookRequest,
    background_tasks: BackgroundTasks,
    engine: DispatchEngine = Depends(get_dispatch_engine),
):
    """Acknowledge at once; the fan-out runs after the response is sent."""
    background_tasks.add_task(run_dispatch, engine, body.item)
    return AckResponse()


@router.post("/subscribe", response_model=SubscribeResponse)
@limiter.limit(subscription_rate_limit)
def subscribe(
    request: Request,
    body: SubscribeRequest,
    manager: SubscriptionManager = Depends(get_subscription_manager),
):
    subscription_id = manager.subscribe(
        body.channel,
        body.device.endpoint,
        body.device.keys.p256dh,
        body.device.keys.auth,
    )
    return SubscribeResponse(subscriptionId=subscription_id)


@router.post("/unsubscribe", response_model=AckResponse)
@limiter.limit(subscription_rate_limit)
def unsubscribe(
    request: Request,
    body: UnsubscribeRequest,
    background_tasks: BackgroundTasks,
    manager: SubscriptionManager = Depends(get_subscription_manager),
):
    background_tasks.add_task(run_unsubscribe, manager, body.channel, body.endpoint)
    return AckResponse()
