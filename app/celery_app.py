"""Celery application configuration."""
from celery import Celery

from app.config import settings

celery_app = Celery(
    "fanoutapi",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["app.worker"],
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Reliability settings (at-least-once webhook delivery)
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_reject_on_worker_lost=True,

    # Concurrency and time limits
    worker_concurrency=settings.WORKER_CONCURRENCY,
    task_time_limit=settings.WORKER_TASK_TIME_LIMIT,

    # Bound every publish so enqueue errors surface instead of hanging
    broker_connection_timeout=settings.QUEUE_TIMEOUT_SECONDS,
    broker_transport_options={
        "socket_timeout": settings.QUEUE_TIMEOUT_SECONDS,
        "socket_connect_timeout": settings.QUEUE_TIMEOUT_SECONDS,
    },
    redis_socket_timeout=settings.QUEUE_TIMEOUT_SECONDS,
    redis_socket_connect_timeout=settings.QUEUE_TIMEOUT_SECONDS,
    result_expires=3600,
)
