"""
Mailchimp plugin.

Upserts the lead behind an event into a Mailchimp audience. Events that do
not carry a lead are ignored.
"""
import hashlib
from typing import Any

from pydantic import BaseModel, field_validator

from app.plugins.base import (
    SEND_EVENT,
    Plugin,
    PluginAction,
    PluginContext,
    PluginMetadata,
    SendEventInput,
    config_field,
)
from app.plugins.formatting import as_dict, provider_error, submission_lead

LEAD_EVENTS = frozenset({"lead.created", "lead.updated", "submission.created"})


class MailchimpConfig(BaseModel):
    api_key: str = config_field("Ex: 0123456789abcdef0123456789abcdef-us21")
    audience_id: str = config_field("Ex: a1b2c3d4e5")
    double_opt_in: bool = config_field("Send a confirmation email before subscribing", default=False)

    @field_validator("api_key")
    @classmethod
    def api_key_has_datacenter(cls, value: str) -> str:
        key, _, datacenter = value.rpartition("-")
        if not key or not datacenter:
            raise ValueError("API key must end with the datacenter suffix, ex: -us21")
        return value

    @property
    def datacenter(self) -> str:
        return self.api_key.rpartition("-")[2]


def subscriber_hash(email: str) -> str:
    return hashlib.md5(email.strip().lower().encode()).hexdigest()


def member_url(config: MailchimpConfig, email: str) -> str:
    return (
        f"https://{config.datacenter}.api.mailchimp.com/3.0"
        f"/lists/{config.audience_id}/members/{subscriber_hash(email)}"
    )


def lead_from_event(event: str, data: Any) -> dict[str, Any] | None:
    if event not in LEAD_EVENTS:
        return None
    payload = as_dict(data)
    lead = submission_lead(payload) if event == "submission.created" else payload
    return lead if lead.get("email") else None


def build_member(lead: dict[str, Any], double_opt_in: bool) -> dict[str, Any]:
    first_name, _, last_name = (lead.get("name") or "").partition(" ")
    return {
        "email_address": lead["email"],
        "status_if_new": "pending" if double_opt_in else "subscribed",
        "merge_fields": {
            "FNAME": first_name,
            "LNAME": last_name,
            "PHONE": lead.get("phone") or "",
        },
    }


async def send_event(ctx: PluginContext) -> dict[str, Any]:
    config: MailchimpConfig = ctx.config
    lead = lead_from_event(ctx.input.event, ctx.input.data)
    if lead is None:
        return {"success": True, "skipped": True}

    response = await ctx.http.put(
        member_url(config, lead["email"]),
        json=build_member(lead, config.double_opt_in),
        auth=("anystring", config.api_key),
    )
    if not response.is_success:
        try:
            detail = response.json().get("detail")
        except ValueError:
            detail = None
        raise provider_error("Mailchimp", response, detail or response.reason_phrase)

    member = response.json()
    return {"success": True, "id": member.get("id"), "status": member.get("status")}


plugin = Plugin(
    slug="mailchimp",
    name="Mailchimp",
    schema=MailchimpConfig,
    actions={
        SEND_EVENT: PluginAction(name="Send Event", schema=SendEventInput, handler=send_event),
    },
    metadata=PluginMetadata(
        description="Sync new leads into your Mailchimp audience automatically.",
        category="marketing",
        developer="Intuit Mailchimp",
        website="https://mailchimp.com/",
        logo="https://mailchimp.com/favicon.ico",
        links={
            "install": "https://mailchimp.com/",
            "guide": "https://mailchimp.com/developer/marketing/api/list-members/",
        },
    ),
)
