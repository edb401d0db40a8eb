"""
Webhook Service

Registry of per-organisation webhook subscriptions plus the signing
helpers shared by the delivery worker and webhook receivers.

SECURITY: All queries MUST include organisation_id filter.
Failure to do so will result in data leakage between tenants.
"""
import hmac
import hashlib
import secrets
from typing import Iterable

from pydantic import AnyHttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.events import EventRegistry
from app.exceptions import NotFoundError, ValidationError
from app.logging_config import get_logger
from app.models.webhook import WebhookSubscription


_url_adapter = TypeAdapter(AnyHttpUrl)

log = get_logger(component="webhook_service")


def generate_webhook_secret() -> str:
    """Generate a random signing secret for a new subscription."""
    return f"whsec_{secrets.token_urlsafe(32)}"


def generate_webhook_signature(payload: str, secret: str, timestamp: int) -> str:
    """Generate HMAC-SHA256 signature over `<timestamp>.<payload>`."""
    message = f"{timestamp}.{payload}"
    return hmac.new(
        secret.encode(),
        message.encode(),
        hashlib.sha256
    ).hexdigest()


def verify_webhook_signature(payload: str, secret: str, timestamp: int, signature: str) -> bool:
    """
    Verify a signature produced by `generate_webhook_signature`.

    Intended for webhook receivers; uses a constant-time comparison.
    """
    expected = generate_webhook_signature(payload, secret, timestamp)
    return hmac.compare_digest(expected, signature)


def validate_webhook_url(url: str) -> str:
    """Return the URL unchanged if it is an absolute http(s) URL."""
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("Webhook URL is required")
    try:
        _url_adapter.validate_python(url)
    except PydanticValidationError:
        raise ValidationError(f"Invalid webhook URL: {url}")
    return url


def validate_webhook_secret(secret: str) -> str:
    """Reject an explicitly blank signing secret."""
    if not isinstance(secret, str) or not secret.strip():
        raise ValidationError("Webhook secret must not be blank")
    return secret


def normalise_events(events: Iterable[str] | None, known_events: EventRegistry | None = None) -> list[str]:
    """
    Validate an event set and collapse duplicates, keeping first-seen order.

    Raises ValidationError for an empty set, blank names, or names
    outside the registry when one is given.
    """
    if events is None:
        raise ValidationError("At least one event is required")

    normalised: list[str] = []
    for event in events:
        if not isinstance(event, str) or not event.strip():
            raise ValidationError("Event names must be non-empty strings")
        if known_events is not None and event not in known_events:
            raise ValidationError(f"Unknown event: {event}")
        if event not in normalised:
            normalised.append(event)

    if not normalised:
        raise ValidationError("At least one event is required")
    return normalised


class WebhookService:
    """Service for managing webhook subscriptions."""

    def __init__(self, db: AsyncSession, known_events: EventRegistry | None = None):
        self.db = db
        self.known_events = known_events

    async def create(
        self,
        organisation_id: str,
        url: str,
        events: Iterable[str],
        secret: str | None = None,
    ) -> WebhookSubscription:
        """
        Register a new webhook subscription.

        Args:
            organisation_id: Owning organisation
            url: Absolute http(s) destination URL
            events: Event names to subscribe to (at least one)
            secret: Signing secret; generated when omitted, rejected when blank

        Returns:
            Newly created WebhookSubscription

        Raises:
            ValidationError: malformed URL, blank secret or empty/unknown event set
        """
        webhook = WebhookSubscription(
            organisation_id=organisation_id,
            url=validate_webhook_url(url),
            secret=validate_webhook_secret(secret) if secret is not None else generate_webhook_secret(),
            events=normalise_events(events, self.known_events),
        )
        self.db.add(webhook)
        await self.db.commit()
        await self.db.refresh(webhook)

        log.info("webhook_created", webhook_id=webhook.id, org_id=organisation_id, events=webhook.events)
        return webhook

    async def find_all_for_organisation(self, organisation_id: str) -> list[WebhookSubscription]:
        """Get all webhook subscriptions for an organisation."""
        stmt = (
            select(WebhookSubscription)
            .where(WebhookSubscription.organisation_id == organisation_id)
            .order_by(WebhookSubscription.created_at)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_one(self, webhook_id: str, organisation_id: str) -> WebhookSubscription | None:
        """Get a webhook subscription by ID within organisation."""
        stmt = select(WebhookSubscription).where(
            WebhookSubscription.id == webhook_id,
            WebhookSubscription.organisation_id == organisation_id
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def update(
        self,
        webhook_id: str,
        organisation_id: str,
        *,
        url: str | None = None,
        secret: str | None = None,
        events: Iterable[str] | None = None,
    ) -> WebhookSubscription:
        """
        Partially update a webhook subscription.

        Fields left as None keep their stored value.

        Raises:
            NotFoundError: no subscription matches (webhook_id, organisation_id)
            ValidationError: a provided field is invalid
        """
        webhook = await self.find_one(webhook_id, organisation_id)
        if webhook is None:
            raise NotFoundError(f"Webhook not found: {webhook_id}")

        # Validate everything before touching the row
        new_url = validate_webhook_url(url) if url is not None else None
        new_events = normalise_events(events, self.known_events) if events is not None else None
        new_secret = validate_webhook_secret(secret) if secret is not None else None

        if new_url is not None:
            webhook.url = new_url
        if new_secret is not None:
            webhook.secret = new_secret
        if new_events is not None:
            webhook.events = new_events

        await self.db.commit()
        await self.db.refresh(webhook)

        log.info("webhook_updated", webhook_id=webhook.id, org_id=organisation_id)
        return webhook

    async def delete(self, webhook_id: str, organisation_id: str) -> None:
        """
        Delete a webhook subscription.

        Raises:
            NotFoundError: no subscription matches (webhook_id, organisation_id)
        """
        webhook = await self.find_one(webhook_id, organisation_id)
        if webhook is None:
            raise NotFoundError(f"Webhook not found: {webhook_id}")

        await self.db.delete(webhook)
        await self.db.commit()

        log.info("webhook_deleted", webhook_id=webhook_id, org_id=organisation_id)
