"""
Zapier plugin.

Forwards every event to a Zapier "Catch Hook" trigger.
"""
from typing import Any

from pydantic import BaseModel

from app.config import settings
from app.plugins.base import (
    SEND_EVENT,
    Plugin,
    PluginAction,
    PluginContext,
    PluginMetadata,
    SendEventInput,
    config_field,
)
from app.plugins.formatting import provider_error, utc_now_iso

ZAPIER_HOOKS_URL = "https://hooks.zapier.com/hooks/catch"


class ZapierConfig(BaseModel):
    api_key: str = config_field("Ex: 1234567890abcdef1234567890abcdef")
    workspace_id: str = config_field("Ex: 1234567")
    trigger_id: str = config_field("Ex: abc123x")


async def send_event(ctx: PluginContext) -> Any:
    config: ZapierConfig = ctx.config
    response = await ctx.http.post(
        f"{ZAPIER_HOOKS_URL}/{config.workspace_id}/{config.trigger_id}/",
        json={
            "event": ctx.input.event,
            "data": ctx.input.data,
            "timestamp": utc_now_iso(),
            "source": settings.APP_NAME,
        },
        headers={"Accept": "application/json"},
    )
    if not response.is_success:
        raise provider_error("Zapier", response, response.reason_phrase)
    return response.json()


plugin = Plugin(
    slug="zapier",
    name="Zapier",
    schema=ZapierConfig,
    actions={
        SEND_EVENT: PluginAction(name="Send Event", schema=SendEventInput, handler=send_event),
    },
    metadata=PluginMetadata(
        description="Automate your workflows by connecting events to thousands of apps without code.",
        category="automations",
        developer="Zapier",
        website="https://zapier.com/",
        logo="https://dubassets.com/integrations/clzlmz336000fjeqynwhfv8vo_S4yz4ak",
        links={
            "install": "https://zapier.com/",
            "guide": "https://zapier.com/help/",
        },
    ),
)
