"""
Dependencies exposing the process-wide registries and the dispatcher.

The plugin manager, event registry and job queue are built once in the
application lifespan and stored on `app.state`.
"""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.events import EventRegistry
from app.plugins.base import PluginManager
from app.queue import JobQueue
from app.services.dispatch_service import EventDispatcher


def get_plugin_manager(request: Request) -> PluginManager:
    return request.app.state.plugins


def get_event_registry(request: Request) -> EventRegistry:
    return request.app.state.events


def get_job_queue(request: Request) -> JobQueue:
    return request.app.state.job_queue


def get_dispatcher(
    db: AsyncSession = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
    plugins: PluginManager = Depends(get_plugin_manager),
) -> EventDispatcher:
    """
    Dependency that provides an EventDispatcher bound to the request session.

    Usage:
        @router.post("/leads")
        async def create_lead(dispatcher: EventDispatcher = Depends(get_dispatcher)):
            await dispatcher.dispatch("lead.created", org_id, payload)
    """
    return EventDispatcher(db, queue, plugins)
