import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from livepush.api.push import router as push_router
from livepush.core.config import Settings, settings as default_settings
from livepush.core.database import create_db_engine, init_db
from livepush.core.errors import StoreError
from livepush.core.graphql import GraphQLClient
from livepush.core.rate_limit import configure_rate_limit, limiter
from livepush.logging import setup_logging
from livepush.services.content import ContentStore
from livepush.services.delivery import DeliveryClient
from livepush.services.dispatch import DispatchEngine
from livepush.services.subscriptions import (
    GraphQLSubscriptionStore,
    SqlSubscriptionStore,
    SubscriptionManager,
    SubscriptionStore,
)

log = logging.getLogger("livepush")


def build_subscription_store(settings: Settings) -> SubscriptionStore:
    if settings.store_backend == "sql":
        engine = create_db_engine(settings.database_url)
        init_db(engine)
        return SqlSubscriptionStore(engine)
    client = GraphQLClient(
        settings.hasura_url,
        headers={"x-hasura-admin-secret": settings.hasura_secret},
        timeout=settings.http_timeout_seconds,
    )
    return GraphQLSubscriptionStore(client)


def build_content_store(settings: Settings) -> ContentStore:
    return ContentStore(GraphQLClient(settings.bunker_url, timeout=settings.http_timeout_seconds))


def _error_response(request: Request, status_code: int, message, **extra) -> JSONResponse:
    rid = getattr(request.state, "request_id", None)
    body = {"error": message, "status_code": status_code, **extra}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body)


def create_app(
    settings: Settings | None = None,
    content_store: ContentStore | None = None,
    subscription_store: SubscriptionStore | None = None,
    delivery_client: DeliveryClient | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> FastAPI:
    """Store clients passed in are used as-is; missing ones are built from settings at startup."""
    settings = settings or default_settings
    configure_rate_limit(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # refuse to start without push keys / store credential
        settings.check_required()
        # only close what was built here
        owned = []
        content = content_store
        if content is None:
            content = build_content_store(settings)
            owned.append(content.client)
        store = subscription_store
        if store is None:
            store = build_subscription_store(settings)
            owned.append(store)
        delivery = delivery_client or DeliveryClient(
            settings.vapid_private_key,
            settings.vapid_subject,
            ttl=settings.push_ttl,
            timeout=settings.http_timeout_seconds,
        )
        app.state.settings = settings
        app.state.subscription_manager = SubscriptionManager(store)
        app.state.dispatch_engine = DispatchEngine(
            content, store, delivery, page_size=settings.push_page_size, sleep=sleep
        )
        log.info("livepush started: store_backend=%s", settings.store_backend)
        try:
            yield
        finally:
            for resource in owned:
                resource.close()

    app = FastAPI(
        title="livepush",
        description="Web Push fan-out for live updates",
        lifespan=lifespan,
    )
    app.state.limiter = limiter

    @app.exception_handler(RequestValidationError)
    def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errs = exc.errors()
        log.warning("Request validation error (400): path=%s detail=%s", request.url.path, errs)
        first = errs[0] if errs else {}
        loc = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{loc}: {first.get('msg')}" if loc else (first.get("msg") or "Invalid request.")
        return _error_response(request, 400, message, detail=jsonable_errors(errs))

    @app.exception_handler(RateLimitExceeded)
    def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return _error_response(request, 429, "Too many requests")

    @app.exception_handler(HTTPException)
    def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return _error_response(request, exc.status_code, exc.detail if isinstance(exc.detail, str) else str(exc.detail))

    @app.exception_handler(StoreError)
    def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        log.error("Store error: path=%s %s", request.url.path, exc)
        return _error_response(request, 502, "Subscription store unavailable.")

    @app.exception_handler(Exception)
    def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        log.exception("Unhandled exception: path=%s %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": "Unexpected server error."})

    @app.middleware("http")
    async def request_id_and_latency(request: Request, call_next):
        request.state.request_id = str(uuid.uuid4())
        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request.state.request_id
        log.info(
            "request_id=%s method=%s path=%s status=%s latency_ms=%.2f",
            request.state.request_id,
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
        )
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list(),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.include_router(push_router)

    @app.get("/health")
    def health():
        return {"status": "ok", "store_backend": settings.store_backend}

    return app


def jsonable_errors(errs: list) -> list:
    """Pydantic error dicts may carry the raised exception in `ctx`; keep them JSON-safe."""
    out = []
    for err in errs:
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        err.pop("input", None)
        out.append(err)
    return out


setup_logging(level=default_settings.log_level.upper())
app = create_app()
