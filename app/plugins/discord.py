"""
Discord plugin.

Posts rich embeds to a Discord channel webhook for new leads and
submissions. Other events are ignored.
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
from app.plugins.formatting import (
    as_dict,
    lead_url,
    provider_error,
    submission_fields,
    submission_lead,
    submission_source,
    utc_now_iso,
)

LEAD_COLOR = 5814783
SUBMISSION_COLOR = 16776960


class DiscordConfig(BaseModel):
    webhook_url: str = config_field("Ex: https://discord.com/api/webhooks/1234567890/abcdefg")


def build_message(event: str, data: dict[str, Any]) -> dict[str, Any] | None:
    footer = {"text": f"{settings.APP_NAME} | Event: {event}"}

    if event == "lead.created":
        return {
            "content": "*New Lead Created!* 🚀",
            "embeds": [{
                "title": data.get("name") or "New Lead",
                "description": "A new lead has been created.",
                "color": LEAD_COLOR,
                "fields": [
                    {"name": "Name", "value": data.get("name") or "N/A", "inline": True},
                    {"name": "Email", "value": data.get("email") or "N/A", "inline": True},
                    {"name": "Link", "value": f"[View Lead]({lead_url(data.get('id'))})"},
                ],
                "footer": footer,
                "timestamp": utc_now_iso(),
            }],
        }

    if event == "submission.created":
        lead = submission_lead(data)
        fields = [{"name": label, "value": str(value), "inline": True} for label, value in submission_fields(data)]
        fields.append({"name": "Link", "value": f"[View Lead Details]({lead_url(lead.get('id'))})", "inline": False})
        return {
            "content": "*New Submission Received!* 📝",
            "embeds": [{
                "title": f"Submission from {lead.get('name') or lead.get('email')}",
                "description": f"A new form submission has been received from *{submission_source(data)}*.",
                "color": SUBMISSION_COLOR,
                "fields": fields,
                "footer": footer,
                "timestamp": utc_now_iso(),
            }],
        }

    return None


async def send_event(ctx: PluginContext) -> dict[str, Any]:
    config: DiscordConfig = ctx.config
    message = build_message(ctx.input.event, as_dict(ctx.input.data))
    if message is None:
        return {"success": True, "skipped": True}

    response = await ctx.http.post(config.webhook_url, json=message)
    if not response.is_success:
        raise provider_error("Discord", response)
    return {"success": True}


plugin = Plugin(
    slug="discord",
    name="Discord",
    schema=DiscordConfig,
    actions={
        SEND_EVENT: PluginAction(name="Send Event", schema=SendEventInput, handler=send_event),
    },
    metadata=PluginMetadata(
        description=(
            "Connect your Discord server to receive real-time notifications "
            "and keep your team informed with automated alerts."
        ),
        category="notifications",
        developer="Discord",
        website="https://discord.com/",
        logo="https://logodownload.org/wp-content/uploads/2017/11/discord-logo-8-1.png",
        links={
            "install": "https://discord.com/",
            "guide": "https://discord.com/developers/docs",
        },
    ),
)
