"""
Webhook API routes.

Manage an organisation's webhook subscriptions. Every mutation is itself
emitted as a `webhook.*` event.
"""
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import TokenPayload, get_current_user, require_admin
from app.dependencies.fanout import get_dispatcher, get_event_registry
from app.events import EventRegistry
from app.exceptions import NotFoundError, ValidationError
from app.models.webhook import WebhookSubscription
from app.routes.events import EventOptionResponse, list_event_options
from app.services.dispatch_service import EventDispatcher
from app.services.webhook_service import WebhookService


router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


class CreateWebhookRequest(BaseModel):
    """Request model for registering a webhook."""
    url: str
    events: list[str]
    secret: str | None = None


class UpdateWebhookRequest(BaseModel):
    """Request model for updating a webhook. Omitted fields are kept."""
    url: str | None = None
    events: list[str] | None = None
    secret: str | None = None


class WebhookResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organisation_id: str
    url: str
    secret: str
    events: list[str]
    created_at: datetime
    updated_at: datetime


def webhook_event_payload(webhook: WebhookSubscription) -> dict:
    """Event payload for webhook.* events; never includes the secret."""
    return {"id": webhook.id, "url": webhook.url, "events": list(webhook.events)}


@router.get("/events", response_model=list[EventOptionResponse])
async def list_subscribable_events(
    token: TokenPayload = Depends(get_current_user),
    events: EventRegistry = Depends(get_event_registry)
):
    """List the events a webhook can subscribe to."""
    return list_event_options(events)


@router.get("/", response_model=list[WebhookResponse])
async def list_webhooks(
    token: TokenPayload = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List webhook subscriptions for the organisation."""
    return await WebhookService(db).find_all_for_organisation(token.org_id)


@router.post("/", response_model=WebhookResponse, status_code=status.HTTP_201_CREATED)
async def create_webhook(
    request: CreateWebhookRequest,
    token: TokenPayload = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    events: EventRegistry = Depends(get_event_registry),
    dispatcher: EventDispatcher = Depends(get_dispatcher)
):
    """
    Register a webhook for the organisation.

    The endpoint receives a signed POST for each subscribed event.
    A signing secret is generated when none is given.
    """
    try:
        webhook = await WebhookService(db, events).create(
            token.org_id,
            request.url,
            request.events,
            secret=request.secret
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )

    await dispatcher.dispatch("webhook.created", token.org_id, webhook_event_payload(webhook))
    return webhook


@router.get("/{webhook_id}", response_model=WebhookResponse)
async def get_webhook(
    webhook_id: str,
    token: TokenPayload = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Get a webhook subscription by ID."""
    webhook = await WebhookService(db).find_one(webhook_id, token.org_id)

    if not webhook:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Webhook not found"
        )

    return webhook


@router.put("/{webhook_id}", response_model=WebhookResponse)
async def update_webhook(
    webhook_id: str,
    request: UpdateWebhookRequest,
    token: TokenPayload = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    events: EventRegistry = Depends(get_event_registry),
    dispatcher: EventDispatcher = Depends(get_dispatcher)
):
    """Update a webhook subscription. Omitted fields keep their values."""
    try:
        webhook = await WebhookService(db, events).update(
            webhook_id,
            token.org_id,
            url=request.url,
            secret=request.secret,
            events=request.events
        )
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Webhook not found"
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )

    await dispatcher.dispatch("webhook.updated", token.org_id, webhook_event_payload(webhook))
    return webhook


@router.delete("/{webhook_id}", response_model=dict)
async def delete_webhook(
    webhook_id: str,
    token: TokenPayload = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_dispatcher)
):
    """Remove a webhook subscription."""
    try:
        await WebhookService(db).delete(webhook_id, token.org_id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Webhook not found"
        )

    await dispatcher.dispatch("webhook.deleted", token.org_id, {"id": webhook_id})
    return {"message": "Webhook removed successfully"}
