"""
Plugin action routing.

Runs the `send_event` action of every enabled, registered plugin an
organisation has installed. Handlers run concurrently and each one is
bounded by its own timeout; one failing plugin never affects another.

SECURITY: All queries MUST include organisation_id filter.
Failure to do so will result in data leakage between tenants.
"""
import asyncio
from dataclasses import asdict, dataclass
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import PluginHandlerError
from app.logging_config import get_logger
from app.models.integration import Integration
from app.plugins.base import SEND_EVENT, Plugin, PluginContext, PluginManager
from app.routes.metrics import track_plugin_invocation
from app.sentry_config import capture_exception
from app.services.integration_service import IntegrationService


@dataclass(frozen=True)
class PluginInvocation:
    plugin: str
    succeeded: bool
    result: Any = None
    error: str | None = None

    def as_dict(self) -> dict:
        return asdict(self)


class PluginActionRouter:
    """
    Routes an event to installed plugins.

    Usage:
        router = PluginActionRouter(plugins, http_client)
        outcomes = await router.route(db, "lead.created", org_id, payload)
    """

    def __init__(self, plugins: PluginManager, http: httpx.AsyncClient, timeout: float | None = None):
        self.plugins = plugins
        self.http = http
        self.timeout = timeout or settings.PLUGIN_TIMEOUT_SECONDS

    def resolve(self, installations: list[Integration]) -> list[tuple[Plugin, Integration]]:
        """Keep installations whose plugin is registered and can receive events."""
        targets = []
        for installation in installations:
            plugin = self.plugins.find(installation.provider)
            if plugin is None or not plugin.has_action(SEND_EVENT):
                continue
            targets.append((plugin, installation))
        return targets

    async def route(
        self,
        db: AsyncSession,
        event: str,
        organisation_id: str,
        payload: dict[str, Any],
    ) -> list[PluginInvocation]:
        installations = await IntegrationService(db, self.plugins).find_enabled_for_organisation(organisation_id)
        targets = self.resolve(installations)
        if not targets:
            return []

        return list(await asyncio.gather(*(
            self.invoke(plugin, installation.config, event, organisation_id, payload)
            for plugin, installation in targets
        )))

    async def invoke(
        self,
        plugin: Plugin,
        config: dict[str, Any],
        event: str,
        organisation_id: str,
        payload: Any,
    ) -> PluginInvocation:
        """Run one plugin's `send_event` action. Failures are reported, never raised."""
        log = get_logger(plugin=plugin.slug, org_id=organisation_id, event=event)
        action = plugin.actions[SEND_EVENT]

        try:
            context = PluginContext(
                config=plugin.schema.model_validate(config),
                input=action.schema.model_validate({"event": event, "data": payload}),
                http=self.http,
            )
            result = await asyncio.wait_for(action.handler(context), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            error = PluginHandlerError(plugin.slug, organisation_id, event, f"timed out after {self.timeout}s")
            return self._failed(error, exc, log)
        except Exception as exc:
            error = PluginHandlerError(plugin.slug, organisation_id, event, str(exc) or type(exc).__name__)
            return self._failed(error, exc, log)

        track_plugin_invocation(plugin.slug, "succeeded")
        log.info("plugin_action_succeeded")
        return PluginInvocation(plugin=plugin.slug, succeeded=True, result=result)

    def _failed(self, error: PluginHandlerError, cause: BaseException, log) -> PluginInvocation:
        error.__cause__ = cause
        track_plugin_invocation(error.slug, "failed")
        log.error("plugin_action_failed", error=str(error), error_type=type(cause).__name__)
        capture_exception(error, plugin=error.slug, org_id=error.organisation_id, event=error.event)
        return PluginInvocation(plugin=error.slug, succeeded=False, error=str(error))
