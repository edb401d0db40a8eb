"""
Make (formerly Integromat) plugin.

Posts events to a Make custom webhook scenario.
"""
from typing import Any, Literal

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


class MakeConfig(BaseModel):
    api_key: str = config_field("Ex: 1234567890abcdef1234567890abcdef")
    workflow_id: str = config_field("Ex: 1234567890abcdef1234567890abcdef")
    environment: Literal["production", "staging", "development"] = config_field("Ex: production")
    region: str = config_field("Make hook region, ex: eu1", default="eu1")


class SendMessageInput(BaseModel):
    message: str


def hook_url(config: MakeConfig) -> str:
    return f"https://hook.{config.region}.make.com/{config.workflow_id}"


def _headers(config: MakeConfig) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {config.api_key}",
        "User-Agent": f"{settings.APP_NAME}/{settings.APP_VERSION}",
    }


async def _post(ctx: PluginContext, body: dict[str, Any]) -> Any:
    config: MakeConfig = ctx.config
    response = await ctx.http.post(hook_url(config), json=body, headers=_headers(config))
    if not response.is_success:
        raise provider_error("Make", response, f"{response.reason_phrase} - {response.text}")
    # Make answers "Accepted" as plain text for scenarios without a webhook response module
    try:
        return response.json()
    except ValueError:
        return {"accepted": True, "body": response.text}


async def send_event(ctx: PluginContext) -> Any:
    config: MakeConfig = ctx.config
    return await _post(ctx, {
        "event": ctx.input.event,
        "data": ctx.input.data,
        "metadata": {
            "timestamp": utc_now_iso(),
            "source": settings.APP_NAME,
            "environment": config.environment,
        },
    })


async def send_message(ctx: PluginContext) -> Any:
    return await _post(ctx, {"message": ctx.input.message, "timestamp": utc_now_iso()})


plugin = Plugin(
    slug="make",
    name="Make",
    schema=MakeConfig,
    actions={
        SEND_EVENT: PluginAction(name="Send Event", schema=SendEventInput, handler=send_event),
        "send": PluginAction(name="Send", schema=SendMessageInput, handler=send_message),
    },
    metadata=PluginMetadata(
        description="Integrate with Make scenarios to streamline processes.",
        category="automations",
        developer="Make",
        website="https://www.make.com/",
        logo="https://www.make.com/en/favicon.ico",
        links={
            "install": "https://www.make.com/",
            "guide": "https://www.make.com/en/help",
        },
    ),
)
