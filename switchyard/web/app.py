"""FastAPI front door: webhook routes, health, and queue dashboard."""

import asyncio
import functools
from collections.abc import AsyncIterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Any

import redis
from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from switchyard.adapters.queue import InMemoryQueueAdapter
from switchyard.contrib.adapters.queue import RedisQueueAdapter
from switchyard.core.common.exceptions import ConfigurationError
from switchyard.core.common.types import Priority
from switchyard.core.dispatcher import Dispatcher
from switchyard.core.processing.outcome import (
    CompletionOutcome,
    CompletionTimeout,
    Failure,
    FailureKind,
)
from switchyard.core.processing.processor import JobProcessor, WebhookProcessor
from switchyard.utils.logging import ContextLogger, resolve_logger
from switchyard.utils.retry import BackoffPolicy
from switchyard.utils.time import utc_now
from switchyard.web.config import Settings, get_settings

HIGH_QUEUE_NAME = "HighPriorityQueue"
LOW_QUEUE_NAME = "LowPriorityQueue"


def build_dispatcher(
    settings: Settings,
    processor: JobProcessor | None = None,
    logger: ContextLogger | None = None,
) -> Dispatcher:
    """
    Build a Dispatcher from settings.

    Args:
        settings: Service settings
        processor: Processor override (default: WebhookProcessor to N8N_WEBHOOK_URL)
        logger: Logger (uses default if None)

    Raises:
        ConfigurationError: If no processor is given and N8N_WEBHOOK_URL is unset
    """
    if processor is None:
        if not settings.downstream_url:
            raise ConfigurationError("N8N_WEBHOOK_URL must be set")
        processor = WebhookProcessor(
            settings.downstream_url,
            timeout_seconds=settings.downstream_timeout_seconds,
            logger=logger,
        )

    retention = {"keep_completed": settings.keep_completed, "keep_failed": settings.keep_failed}
    if settings.queue_backend == "memory":
        high = InMemoryQueueAdapter(HIGH_QUEUE_NAME, **retention)
        low = InMemoryQueueAdapter(LOW_QUEUE_NAME, **retention)
    else:
        client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_user,
            password=(
                settings.redis_password.get_secret_value() if settings.redis_password else None
            ),
            decode_responses=True,
        )
        options: dict[str, Any] = {
            **retention,
            "key_prefix": settings.redis_key_prefix,
            "lease_seconds": settings.lease_seconds,
            "max_stalled_count": settings.max_stalled_count,
        }
        high = RedisQueueAdapter(client, HIGH_QUEUE_NAME, **options)
        low = RedisQueueAdapter(client, LOW_QUEUE_NAME, **options)

    return Dispatcher(
        high,
        low,
        processor,
        worker_count=settings.worker_count,
        rebalance_interval_seconds=settings.rebalance_interval_seconds,
        stalled_interval_seconds=settings.stalled_interval_seconds,
        backoff=BackoffPolicy(
            max_attempts=settings.max_attempts, delay_ms=settings.backoff_delay_ms
        ),
        logger=logger,
    )


def outcome_response(outcome: CompletionOutcome) -> Response:
    """Map a completion outcome onto the HTTP reply."""
    if isinstance(outcome, CompletionTimeout):
        return JSONResponse(
            status_code=504, content={"error": "Job timed out", "item_id": outcome.item_id}
        )

    if isinstance(outcome, Failure):
        if outcome.kind is FailureKind.DOWNSTREAM_HTTP_ERROR and outcome.status_code is not None:
            return _body_response(outcome.status_code, outcome.body)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Job failed",
                "details": {
                    "kind": outcome.kind.value,
                    "error": outcome.detail,
                    "attempts_made": outcome.attempts_made,
                },
            },
        )

    return _body_response(outcome.status_code, outcome.body)


def _body_response(status_code: int, body: Any) -> Response:
    if body is None:
        return Response(status_code=status_code)
    if isinstance(body, str):
        return PlainTextResponse(body, status_code=status_code)
    return JSONResponse(status_code=status_code, content=body)


def create_app(
    settings: Settings | None = None,
    dispatcher: Dispatcher | None = None,
    logger: ContextLogger | None = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    The dispatcher is started on lifespan startup and stopped (workers
    drained) on shutdown.

    Args:
        settings: Service settings (default: get_settings())
        dispatcher: Prebuilt dispatcher (default: build_dispatcher(settings))
        logger: Logger (uses default if None)
    """
    settings = settings or get_settings()
    log = resolve_logger(logger, "web")
    if dispatcher is None:
        dispatcher = build_dispatcher(settings, logger=logger)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.dispatcher.start()
        # Webhook callers block here until their item is terminal; the event
        # loop and Starlette's shared thread pool stay free for other routes.
        app.state.submit_executor = ThreadPoolExecutor(
            max_workers=app.state.settings.max_pending_requests,
            thread_name_prefix="switchyard-submit",
        )
        try:
            yield
        finally:
            app.state.submit_executor.shutdown(wait=False, cancel_futures=True)
            app.state.dispatcher.stop()

    app = FastAPI(title="switchyard", lifespan=lifespan)
    app.state.dispatcher = dispatcher
    app.state.settings = settings

    async def relay(request: Request, payload: Any, priority: Priority) -> Response:
        submit = functools.partial(
            request.app.state.dispatcher.submit,
            payload,
            priority,
            timeout_seconds=request.app.state.settings.request_timeout_seconds,
        )
        try:
            loop = asyncio.get_running_loop()
            outcome = await loop.run_in_executor(request.app.state.submit_executor, submit)
        except Exception as e:
            log.error(
                "Webhook submission failed", priority=priority.value, error=str(e), exc_info=True
            )
            return JSONResponse(
                status_code=500, content={"error": "Internal server error", "message": str(e)}
            )

        if not outcome.ok:
            log.warning(
                "Webhook did not succeed", priority=priority.value, outcome=outcome.to_dict()
            )
        return outcome_response(outcome)

    @app.post("/webhook/high-priority")
    async def high_priority_webhook(
        request: Request, payload: Any = Body(default=None)
    ) -> Response:
        return await relay(request, payload, Priority.HIGH)

    @app.post("/webhook/low-priority")
    async def low_priority_webhook(
        request: Request, payload: Any = Body(default=None)
    ) -> Response:
        return await relay(request, payload, Priority.LOW)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "timestamp": utc_now().isoformat()}

    @app.get("/add-job")
    async def add_job(
        request: Request, id: str | None = None, email: str | None = None
    ) -> Response:
        if not id or not email:
            return JSONResponse(
                status_code=400,
                content={"error": "Requests must contain both an id and a email"},
            )
        await asyncio.to_thread(
            request.app.state.dispatcher.submit_detached,
            {"id": id, "email": email},
            Priority.HIGH,
            name=f"TestJob-{id}",
        )
        return JSONResponse(content={"ok": True})

    @app.get("/admin/queues")
    async def queue_dashboard(request: Request) -> dict[str, Any]:
        return await asyncio.to_thread(request.app.state.dispatcher.get_status)

    @app.get("/admin/queues/{priority}/items/{item_id}")
    async def queue_item(request: Request, priority: Priority, item_id: str) -> Response:
        item = await asyncio.to_thread(request.app.state.dispatcher.get_item, priority, item_id)
        if item is None:
            return JSONResponse(
                status_code=404, content={"error": "Item not found", "item_id": item_id}
            )
        return JSONResponse(content=item)

    return app
