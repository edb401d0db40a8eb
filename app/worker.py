"""
Celery worker for FanoutAPI.

Consumes webhook delivery and plugin routing tasks from Redis.
Run with: celery -A app.worker worker --loglevel=info
"""
import asyncio
from dataclasses import dataclass
from typing import Any

import httpx
from celery.signals import worker_process_init, worker_process_shutdown
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.celery_app import celery_app
from app.config import settings
from app.database import AsyncSessionLocal, engine
from app.events import EventRegistry, build_event_registry
from app.logging_config import get_logger
from app.plugins.base import PluginManager
from app.plugins.registry import build_plugin_manager
from app.queue import DELIVER_WEBHOOK, ROUTE_PLUGIN_EVENT, DeliveryJob
from app.sentry_config import configure_sentry
from app.services.delivery_service import DeliveryResult, DeliveryState, WebhookDeliverer
from app.services.plugin_router import PluginActionRouter, PluginInvocation


log = get_logger(component="worker")

# Initialize Sentry (if SENTRY_DSN is set)
configure_sentry()


@dataclass
class WorkerContext:
    """Per-process resources shared by every task the process runs."""
    http: httpx.AsyncClient
    plugins: PluginManager
    events: EventRegistry
    session_factory: async_sessionmaker
    deliverer: WebhookDeliverer
    plugin_router: PluginActionRouter


def build_context(
    http: httpx.AsyncClient | None = None,
    session_factory: async_sessionmaker | None = None,
) -> WorkerContext:
    """Build the plugin manager, then the event registry, then the shared HTTP client."""
    plugins = build_plugin_manager()
    events = build_event_registry()
    http = http or httpx.AsyncClient(
        timeout=httpx.Timeout(settings.WEBHOOK_TIMEOUT_SECONDS),
        follow_redirects=False,
    )
    return WorkerContext(
        http=http,
        plugins=plugins,
        events=events,
        session_factory=session_factory or AsyncSessionLocal,
        deliverer=WebhookDeliverer(http),
        plugin_router=PluginActionRouter(plugins, http),
    )


# One event loop and one context per worker process
_loop: asyncio.AbstractEventLoop | None = None
_context: WorkerContext | None = None


def run(coro):
    """Run a coroutine on this process's event loop."""
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop.run_until_complete(coro)


def get_context() -> WorkerContext:
    global _context
    if _context is None:
        _context = build_context()
        log.info(
            "worker_context_ready",
            plugins=sorted(_context.plugins.slugs()),
            events=len(_context.events),
            max_attempts=settings.WEBHOOK_MAX_ATTEMPTS,
        )
    return _context


@worker_process_init.connect
def init_worker_process(**kwargs):
    # Connections inherited from the parent process must not be reused
    engine.sync_engine.dispose(close=False)
    get_context()


@worker_process_shutdown.connect
def shutdown_worker_process(**kwargs):
    global _context
    if _context is not None:
        run(_context.http.aclose())
        _context = None
    if _loop is not None and not _loop.is_closed():
        _loop.close()
    log.info("worker_process_stopped")


async def deliver(context: WorkerContext, job_data: dict, retries: int) -> DeliveryResult:
    """One delivery attempt for a queued job carrying `retries` earlier failures."""
    job = DeliveryJob.model_validate({**job_data, "retries": retries})
    return await context.deliverer.attempt(job)


async def route(
    context: WorkerContext,
    event: str,
    organisation_id: str,
    payload: dict[str, Any],
) -> list[PluginInvocation]:
    async with context.session_factory() as db:
        return await context.plugin_router.route(db, event, organisation_id, payload)


@celery_app.task(bind=True, name=DELIVER_WEBHOOK, max_retries=settings.WEBHOOK_MAX_ATTEMPTS - 1)
def deliver_webhook(self, job_data: dict) -> dict:
    """
    Deliver one webhook job.

    Celery's request.retries (0 on the first attempt) is the job's retry
    counter; self.retry re-publishes the same task id with retries + 1.
    """
    result = run(deliver(get_context(), job_data, self.request.retries))
    if result.state is DeliveryState.RETRYING:
        raise self.retry(countdown=result.retry_in)
    return result.as_dict()


@celery_app.task(name=ROUTE_PLUGIN_EVENT, max_retries=0, acks_late=False, reject_on_worker_lost=False)
def route_plugin_event(event: str, organisation_id: str, payload: dict) -> list[dict]:
    """
    Run every installed plugin's send_event action once for one event.

    Acked on receipt: a worker lost mid-task drops the event rather than
    re-running provider calls that are not idempotent.
    """
    outcomes = run(route(get_context(), event, organisation_id, payload))
    return [outcome.as_dict() for outcome in outcomes]
