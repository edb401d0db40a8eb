"""
Event dispatch fan-out.

Turns one domain event into queued work: a delivery job per matching
webhook subscription and, when the organisation has plugins installed,
one plugin routing job. Nothing here waits on delivery.

SECURITY: All queries MUST include organisation_id filter.
Failure to do so will result in data leakage between tenants.
"""
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import EnqueueError
from app.logging_config import get_logger
from app.plugins.base import SEND_EVENT, PluginManager
from app.queue import DeliveryJob, JobQueue, WebhookSnapshot
from app.routes.metrics import track_enqueue_failure, track_event_dispatched, track_job_enqueued
from app.sentry_config import capture_exception
from app.services.integration_service import IntegrationService
from app.services.webhook_service import WebhookService


class DispatchSummary(BaseModel):
    """What a dispatch call managed to queue. Callers are free to ignore it."""
    event: str
    organisation_id: str
    webhooks_matched: int = 0
    webhooks_enqueued: int = 0
    webhooks_failed: int = 0
    plugins_enqueued: bool = False
    plugins_failed: bool = False
    job_ids: list[str] = Field(default_factory=list)


class EventDispatcher:
    """
    Fans events out to webhook subscriptions and plugin installations.

    Usage:
        dispatcher = EventDispatcher(db, queue, plugins)
        await dispatcher.dispatch("lead.created", org_id, {"id": lead.id, ...})
    """

    def __init__(self, db: AsyncSession, queue: JobQueue, plugins: PluginManager):
        self.db = db
        self.queue = queue
        self.plugins = plugins

    async def dispatch(self, event: str, organisation_id: str, payload: dict[str, Any]) -> DispatchSummary:
        """
        Enqueue every unit of work an event produces for an organisation.

        Each enqueue is isolated: a failure is logged and counted, and the
        remaining jobs are still attempted.
        """
        log = get_logger(org_id=organisation_id, event=event)
        summary = DispatchSummary(event=event, organisation_id=organisation_id)
        track_event_dispatched(event)

        await self._dispatch_webhooks(event, organisation_id, payload, summary, log)
        await self._dispatch_plugins(event, organisation_id, payload, summary, log)

        log.info(
            "event_dispatched",
            webhooks_matched=summary.webhooks_matched,
            webhooks_enqueued=summary.webhooks_enqueued,
            webhooks_failed=summary.webhooks_failed,
            plugins_enqueued=summary.plugins_enqueued,
        )
        return summary

    async def _dispatch_webhooks(self, event, organisation_id, payload, summary, log):
        webhooks = await WebhookService(self.db).find_all_for_organisation(organisation_id)

        for webhook in webhooks:
            if not webhook.subscribes_to(event):
                continue
            summary.webhooks_matched += 1

            job = DeliveryJob(
                webhook=WebhookSnapshot.from_subscription(webhook),
                event_name=event,
                payload=payload,
            )
            try:
                job_id = await self.queue.enqueue_webhook_delivery(job)
            except EnqueueError as exc:
                summary.webhooks_failed += 1
                track_enqueue_failure("webhook")
                log.error("webhook_enqueue_failed", webhook_id=webhook.id, error=str(exc))
                capture_exception(exc, org_id=organisation_id, webhook_id=webhook.id, event=event)
                continue

            summary.webhooks_enqueued += 1
            summary.job_ids.append(job_id)
            track_job_enqueued("webhook")

    async def _dispatch_plugins(self, event, organisation_id, payload, summary, log):
        installations = await IntegrationService(self.db, self.plugins).find_enabled_for_organisation(organisation_id)
        routable = [
            installation.provider
            for installation in installations
            if (plugin := self.plugins.find(installation.provider)) is not None and plugin.has_action(SEND_EVENT)
        ]
        if not routable:
            return

        try:
            job_id = await self.queue.enqueue_plugin_event(event, organisation_id, payload)
        except EnqueueError as exc:
            summary.plugins_failed = True
            track_enqueue_failure("plugin")
            log.error("plugin_enqueue_failed", plugins=routable, error=str(exc))
            capture_exception(exc, org_id=organisation_id, event=event)
            return

        summary.plugins_enqueued = True
        summary.job_ids.append(job_id)
        track_job_enqueued("plugin")
