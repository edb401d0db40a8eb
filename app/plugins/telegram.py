"""
Telegram plugin.

Sends Markdown messages through the Telegram Bot API.
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
    pretty_json,
    provider_error,
    submission_fields,
    submission_lead,
    submission_source,
    utc_now_iso,
)

TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramConfig(BaseModel):
    chat_id: str = config_field("Telegram chat ID")
    token: str = config_field("Telegram bot token")


def build_message(event: str, data: Any) -> str:
    payload = as_dict(data)

    if event == "lead.created":
        return (
            "🚀 *New Lead Received*\n\n"
            f"*Name:* {payload.get('name') or 'N/A'}\n"
            f"*Email:* {payload.get('email') or 'N/A'}\n"
            f"*Phone:* {payload.get('phone') or 'N/A'}\n\n"
            f"[View Lead Details]({lead_url(payload.get('id'))})"
        )

    if event == "submission.created":
        lead = submission_lead(payload)
        details = "\n".join(f"*{label}:* {value}" for label, value in submission_fields(payload))
        return (
            "📝 *New Submission Received!*\n\n"
            f"*From:* {lead.get('name') or lead.get('email')}\n"
            f"*Source:* {submission_source(payload)}\n\n"
            f"*Details:*\n{details}\n\n"
            f"[View Lead Details]({lead_url(lead.get('id'))})"
        )

    return (
        f"📢 *Event:* {event}\n\n"
        f"```json\n{pretty_json(data)}\n```\n\n"
        f"_Timestamp: {utc_now_iso()}_\n"
        f"_Source: {settings.APP_NAME}_"
    )


async def send_event(ctx: PluginContext) -> dict[str, Any]:
    config: TelegramConfig = ctx.config
    response = await ctx.http.post(
        f"{TELEGRAM_API_URL}/bot{config.token}/sendMessage",
        json={
            "chat_id": config.chat_id,
            "text": build_message(ctx.input.event, ctx.input.data),
            "parse_mode": "Markdown",
            "disable_web_page_preview": True,
        },
    )

    if not response.is_success:
        try:
            detail = response.json().get("description")
        except ValueError:
            detail = None
        raise provider_error("Telegram", response, detail or response.reason_phrase)

    return response.json()


plugin = Plugin(
    slug="telegram",
    name="Telegram",
    schema=TelegramConfig,
    actions={
        SEND_EVENT: PluginAction(name="Send Event", schema=SendEventInput, handler=send_event),
    },
    metadata=PluginMetadata(
        description="Link your Telegram account to receive instant notifications.",
        category="notifications",
        developer="Telegram",
        website="https://telegram.org/",
        logo="https://telegram.org/img/t_logo.png",
        links={
            "install": "https://telegram.org/",
            "guide": "https://telegram.org/faq",
        },
    ),
)
