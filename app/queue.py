"""
Job queue boundary.

Everything that crosses into Redis goes through here: the queued job
shapes and the Celery producer used to enqueue them. Enqueue calls are
bounded by QUEUE_TIMEOUT_SECONDS and any failure surfaces as EnqueueError.
"""
import asyncio
from typing import Any

from celery import Celery
from pydantic import BaseModel, Field, model_validator

from app.celery_app import celery_app
from app.config import settings
from app.exceptions import EnqueueError
from app.logging_config import get_logger
from app.models.webhook import WebhookSubscription


DELIVER_WEBHOOK = "fanout.deliver_webhook"
ROUTE_PLUGIN_EVENT = "fanout.route_plugin_event"

log = get_logger(component="queue")


class WebhookSnapshot(BaseModel):
    """Subscription as it was at enqueue time; later edits do not reach queued jobs."""
    id: str
    organisation_id: str
    url: str
    secret: str
    events: list[str]

    @classmethod
    def from_subscription(cls, webhook: WebhookSubscription) -> "WebhookSnapshot":
        return cls(
            id=webhook.id,
            organisation_id=webhook.organisation_id,
            url=webhook.url,
            secret=webhook.secret,
            events=list(webhook.events),
        )


class DeliveryJob(BaseModel):
    """One webhook delivery: snapshot, event and payload, plus the retry counter."""
    webhook: WebhookSnapshot
    event_name: str
    payload: dict[str, Any] = Field(default_factory=dict)
    retries: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def event_is_subscribed(self) -> "DeliveryJob":
        if self.event_name not in self.webhook.events:
            raise ValueError(f"Webhook {self.webhook.id} is not subscribed to {self.event_name}")
        return self


class JobQueue:
    """
    Async front for the Celery producer.

    Celery publishes synchronously, so each publish runs in a worker
    thread. The publish itself is bounded by QUEUE_TIMEOUT_SECONDS through
    the publish timeout and the broker socket timeouts (`app/celery_app.py`),
    and the call waits for its real outcome: a job reported as failed was
    never handed to the broker. The broker connection is opened on first
    use, so the API can start while Redis is down; enqueue calls then fail
    with EnqueueError.

    Usage:
        queue = JobQueue()
        job_id = await queue.enqueue_webhook_delivery(job)
        await queue.close()
    """

    def __init__(self, app: Celery | None = None, timeout: float | None = None):
        self.app = app or celery_app
        self.timeout = timeout if timeout is not None else settings.QUEUE_TIMEOUT_SECONDS

    async def _enqueue(self, task_name: str, *args: Any) -> str:
        try:
            result = await asyncio.to_thread(
                self.app.send_task,
                task_name,
                args=list(args),
                retry=False,
                timeout=self.timeout,
            )
        except Exception as exc:
            raise EnqueueError(f"Failed to enqueue {task_name}: {exc}") from exc
        return result.id

    async def enqueue_webhook_delivery(self, job: DeliveryJob) -> str:
        job_id = await self._enqueue(DELIVER_WEBHOOK, job.model_dump(mode="json"))
        log.debug("webhook_delivery_enqueued", job_id=job_id, webhook_id=job.webhook.id, event=job.event_name)
        return job_id

    async def enqueue_plugin_event(self, event: str, organisation_id: str, payload: dict[str, Any]) -> str:
        job_id = await self._enqueue(ROUTE_PLUGIN_EVENT, event, organisation_id, payload)
        log.debug("plugin_event_enqueued", job_id=job_id, org_id=organisation_id, event=event)
        return job_id

    async def close(self):
        await asyncio.to_thread(self.app.close)


# Process-wide queue, created lazily
_job_queue: JobQueue | None = None


def get_job_queue() -> JobQueue:
    """Get or create the process-wide job queue."""
    global _job_queue
    if _job_queue is None:
        _job_queue = JobQueue()
    return _job_queue


async def close_job_queue():
    global _job_queue
    if _job_queue is not None:
        await _job_queue.close()
        _job_queue = None
