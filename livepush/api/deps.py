from fastapi import Request

from livepush.services.dispatch import DispatchEngine
from livepush.services.subscriptions import SubscriptionManager


def get_dispatch_engine(request: Request) -> DispatchEngine:
    return request.app.state.dispatch_engine


def get_subscription_manager(request: Request) -> SubscriptionManager:
    return request.app.state.subscription_manager
