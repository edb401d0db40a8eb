"""
Application error taxonomy.

Registry errors (validation, not-found) surface synchronously to callers.
Everything on the asynchronous path (enqueue, delivery, plugin actions)
is logged and stops at the worker boundary.
"""


class AppError(Exception):
    """Base class for all application errors."""


class ValidationError(AppError):
    """Input rejected at registration time (bad URL, empty event set, bad config)."""


class NotFoundError(AppError):
    """No record matches the (id, organisation_id) pair."""


class PluginNotFoundError(NotFoundError):
    """No plugin is registered under the given slug."""

    def __init__(self, slug: str):
        super().__init__(f"Plugin not found: {slug}")
        self.slug = slug


class EnqueueError(AppError):
    """A unit of work could not be placed on the job queue."""


class DeliveryFailure(AppError):
    """
    Transient webhook delivery failure.

    Raised for non-2xx responses, timeouts and transport errors. The
    delivery worker turns it into a retry or an abandonment.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PluginHandlerError(AppError):
    """A plugin action handler failed for one organisation and event."""

    def __init__(self, slug: str, organisation_id: str, event: str, message: str):
        super().__init__(f"Plugin {slug} failed for event {event}: {message}")
        self.slug = slug
        self.organisation_id = organisation_id
        self.event = event
