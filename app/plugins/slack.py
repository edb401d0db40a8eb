"""
Slack plugin.

Sends Block Kit messages through a Slack incoming webhook. Leads and
submissions get a formatted message; any other event is posted as JSON.
"""
from typing import Any, Optional

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
)


class SlackConfig(BaseModel):
    webhook_url: str = config_field("Ex: https://hooks.slack.com/services/T000/B000/XXXX")
    channel: Optional[str] = config_field("Optional channel override, ex: #leads", default=None)


def _section(text: str) -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _context(event: str) -> dict[str, Any]:
    return {
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": f"{settings.APP_NAME} | Event: `{event}`"}],
    }


def build_message(event: str, data: Any) -> dict[str, Any]:
    payload = as_dict(data)

    if event == "lead.created":
        text = "🚀 New lead created"
        blocks = [
            _section(f"*{text}*"),
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Name:*\n{payload.get('name') or 'N/A'}"},
                    {"type": "mrkdwn", "text": f"*Email:*\n{payload.get('email') or 'N/A'}"},
                    {"type": "mrkdwn", "text": f"*Phone:*\n{payload.get('phone') or 'N/A'}"},
                ],
            },
            _section(f"<{lead_url(payload.get('id'))}|View Lead>"),
            _context(event),
        ]
    elif event == "submission.created":
        lead = submission_lead(payload)
        text = "📝 New submission received"
        details = "\n".join(f"*{label}:* {value}" for label, value in submission_fields(payload)) or "_No fields_"
        blocks = [
            _section(f"*{text}*\n*From:* {lead.get('name') or lead.get('email')}\n*Source:* {submission_source(payload)}"),
            _section(details),
            _section(f"<{lead_url(lead.get('id'))}|View Lead Details>"),
            _context(event),
        ]
    else:
        text = f"📢 Event: {event}"
        blocks = [
            _section(f"*{text}*"),
            _section(f"```{pretty_json(data)}```"),
            _context(event),
        ]

    return {"text": text, "blocks": blocks}


async def send_event(ctx: PluginContext) -> dict[str, Any]:
    config: SlackConfig = ctx.config
    message = build_message(ctx.input.event, ctx.input.data)
    if config.channel:
        message["channel"] = config.channel

    response = await ctx.http.post(config.webhook_url, json=message)
    if not response.is_success:
        raise provider_error("Slack", response, response.text)
    return {"success": True}


plugin = Plugin(
    slug="slack",
    name="Slack",
    schema=SlackConfig,
    actions={
        SEND_EVENT: PluginAction(name="Send Event", schema=SendEventInput, handler=send_event),
    },
    metadata=PluginMetadata(
        description="Post leads, submissions and other events to a Slack channel.",
        category="notifications",
        developer="Slack",
        website="https://slack.com/",
        logo="https://a.slack-edge.com/80588/marketing/img/icons/icon_slack_hash_colored.png",
        links={
            "install": "https://api.slack.com/messaging/webhooks",
            "guide": "https://api.slack.com/block-kit",
        },
    ),
)
