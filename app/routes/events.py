"""
Event API routes.

Lists the event vocabulary and lets admins emit an event for their
organisation.
"""
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from app.dependencies.auth import TokenPayload, get_current_user, require_admin
from app.dependencies.fanout import get_dispatcher, get_event_registry
from app.events import EventRegistry
from app.services.dispatch_service import DispatchSummary, EventDispatcher


router = APIRouter(prefix="/api/events", tags=["events"])


class EventOptionResponse(BaseModel):
    value: str
    label: str


class EmitEventRequest(BaseModel):
    """Request model for emitting an event."""
    event: str
    payload: dict[str, Any] = Field(default_factory=dict)


def list_event_options(events: EventRegistry) -> list[EventOptionResponse]:
    return [EventOptionResponse(value=option.value, label=option.label) for option in events.list_events()]


@router.get("/", response_model=list[EventOptionResponse])
async def list_events(
    token: TokenPayload = Depends(get_current_user),
    events: EventRegistry = Depends(get_event_registry)
):
    """List every event an organisation can subscribe to."""
    return list_event_options(events)


@router.post("/", response_model=DispatchSummary, status_code=status.HTTP_202_ACCEPTED)
async def emit_event(
    request: EmitEventRequest,
    token: TokenPayload = Depends(require_admin),
    events: EventRegistry = Depends(get_event_registry),
    dispatcher: EventDispatcher = Depends(get_dispatcher)
):
    """
    Emit an event for the caller's organisation.

    Delivery happens in the background; the response only says what was queued.
    """
    if request.event not in events:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown event: {request.event}"
        )

    return await dispatcher.dispatch(request.event, token.org_id, request.payload)
