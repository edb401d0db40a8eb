"""
Webhook delivery.

One call to `WebhookDeliverer.attempt` is one delivery attempt:

    pending -> in_flight -> delivered
                         -> retrying -> pending (re-queued by the worker)
                         -> abandoned

No database access happens here; the job carries a snapshot of the
subscription taken at dispatch time.
"""
import enum
import json
import time
from dataclasses import dataclass

import httpx

from app.config import settings
from app.exceptions import DeliveryFailure
from app.logging_config import get_logger
from app.queue import DeliveryJob
from app.routes.metrics import track_webhook_delivery
from app.sentry_config import capture_message
from app.services.webhook_service import generate_webhook_signature


class DeliveryState(str, enum.Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    DELIVERED = "delivered"
    RETRYING = "retrying"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class DeliveryResult:
    state: DeliveryState
    attempts: int
    status_code: int | None = None
    error: str | None = None
    retry_in: float | None = None

    def as_dict(self) -> dict:
        return {
            "state": self.state.value,
            "attempts": self.attempts,
            "status_code": self.status_code,
            "error": self.error,
            "retry_in": self.retry_in,
        }


def retry_delay(
    retries: int,
    base: float | None = None,
    factor: float | None = None,
    maximum: float | None = None,
) -> float:
    """
    Seconds to wait before the attempt that follows `retries` failures.

    Exponential (`base * factor ** (retries - 1)`) and capped at `maximum`.
    """
    base = settings.WEBHOOK_RETRY_BASE_DELAY if base is None else base
    factor = settings.WEBHOOK_RETRY_FACTOR if factor is None else factor
    maximum = settings.WEBHOOK_RETRY_MAX_DELAY if maximum is None else maximum
    return min(base * factor ** max(retries - 1, 0), maximum)


def encode_payload(payload: dict) -> str:
    return json.dumps(payload, separators=(",", ":"), default=str)


def build_headers(job: DeliveryJob, body: str, timestamp: int, app_name: str) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "User-Agent": f"{app_name}-Webhooks",
        "X-App-Name": app_name,
        "X-Event-Name": job.event_name,
        "X-Webhook-Id": job.webhook.id,
        "X-Webhook-Attempt": str(job.retries + 1),
        "X-Webhook-Timestamp": str(timestamp),
        "X-Webhook-Signature": generate_webhook_signature(body, job.webhook.secret, timestamp),
    }


class WebhookDeliverer:
    """
    Delivers webhook jobs over a shared HTTP client.

    Usage:
        deliverer = WebhookDeliverer(http_client)
        result = await deliverer.attempt(job)
        if result.state is DeliveryState.RETRYING:
            raise self.retry(countdown=result.retry_in)
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        max_attempts: int | None = None,
        app_name: str | None = None,
        timeout: float | None = None,
    ):
        self.http = http
        self.max_attempts = max_attempts or settings.WEBHOOK_MAX_ATTEMPTS
        self.app_name = app_name or settings.APP_NAME
        self.timeout = timeout or settings.WEBHOOK_TIMEOUT_SECONDS

    async def send(self, job: DeliveryJob) -> httpx.Response:
        """
        POST the signed payload once.

        Raises:
            DeliveryFailure: non-2xx response, timeout or transport error
        """
        body = encode_payload(job.payload)
        timestamp = int(time.time())
        headers = build_headers(job, body, timestamp, self.app_name)

        try:
            response = await self.http.post(job.webhook.url, content=body, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise DeliveryFailure(f"Timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise DeliveryFailure(f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            raise DeliveryFailure(f"Endpoint responded with {response.status_code}", status_code=response.status_code)
        return response

    async def attempt(self, job: DeliveryJob) -> DeliveryResult:
        """Run one delivery attempt and report the resulting state. Never raises DeliveryFailure."""
        log = get_logger(
            webhook_id=job.webhook.id,
            org_id=job.webhook.organisation_id,
            event=job.event_name,
        )

        if job.retries >= self.max_attempts:
            return self._abandon(job, log, attempts=job.retries, error="Retry ceiling reached")

        attempts = job.retries + 1
        log.debug("webhook_delivery_started", state=DeliveryState.IN_FLIGHT.value, attempt=attempts)
        started = time.perf_counter()

        try:
            response = await self.send(job)
        except DeliveryFailure as exc:
            duration = time.perf_counter() - started
            if attempts < self.max_attempts:
                delay = retry_delay(attempts)
                track_webhook_delivery(DeliveryState.RETRYING.value, duration)
                log.warning(
                    "webhook_delivery_retrying",
                    attempt=attempts,
                    max_attempts=self.max_attempts,
                    status_code=exc.status_code,
                    error=str(exc),
                    retry_in=delay,
                )
                return DeliveryResult(
                    state=DeliveryState.RETRYING,
                    attempts=attempts,
                    status_code=exc.status_code,
                    error=str(exc),
                    retry_in=delay,
                )
            return self._abandon(job, log, attempts=attempts, error=str(exc), status_code=exc.status_code, duration=duration)

        duration = time.perf_counter() - started
        track_webhook_delivery(DeliveryState.DELIVERED.value, duration)
        log.info(
            "webhook_delivered",
            attempt=attempts,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )
        return DeliveryResult(state=DeliveryState.DELIVERED, attempts=attempts, status_code=response.status_code)

    def _abandon(self, job, log, attempts, error, status_code=None, duration=None) -> DeliveryResult:
        track_webhook_delivery(DeliveryState.ABANDONED.value, duration)
        log.error(
            "webhook_delivery_abandoned",
            attempts=attempts,
            max_attempts=self.max_attempts,
            status_code=status_code,
            error=error,
        )
        capture_message(
            "Webhook delivery abandoned",
            level="error",
            webhook_id=job.webhook.id,
            org_id=job.webhook.organisation_id,
            event=job.event_name,
        )
        return DeliveryResult(
            state=DeliveryState.ABANDONED,
            attempts=attempts,
            status_code=status_code,
            error=error,
        )
