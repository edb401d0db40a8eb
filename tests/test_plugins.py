"""Tests for the plugin manager and provider handlers."""
import json

import httpx
import pytest

from app.exceptions import PluginNotFoundError, ValidationError
from app.plugins import discord, mailchimp, make, slack, telegram, zapier
from app.plugins.base import SEND_EVENT, Plugin, PluginContext, PluginManager, SendEventInput, describe
from app.plugins.mailchimp import subscriber_hash

LEAD = {"id": "lead-1", "name": "Ada Lovelace", "email": "Ada@Example.com", "phone": "+44 20 0000"}
SUBMISSION = {
    "lead": {"id": "lead-1", "name": "Ada Lovelace", "email": "ada@example.com"},
    "metadata": {"source": "Contact form", "data": {"company_size": "10-50", "message": "Hi"}},
}


class Recorder:
    def __init__(self, status=200, body=None):
        self.status = status
        self.body = body if body is not None else {"ok": True}
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body, request=request)

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


async def call(plugin, config, event, data, http, action=SEND_EVENT):
    handler = plugin.actions[action]
    context = PluginContext(
        config=plugin.schema.model_validate(config),
        input=handler.schema.model_validate({"event": event, "data": data} if action == SEND_EVENT else data),
        http=http,
    )
    return await handler.handler(context)


def test_manager_lists_builtin_plugins(plugins):
    assert plugins.slugs() == {"discord", "slack", "telegram", "zapier", "make", "mailchimp"}
    assert all(plugin.has_action(SEND_EVENT) for plugin in plugins.all())
    assert plugins.get("make").has_action("send")


def test_manager_all_and_fields_on_small_registry():
    manager = PluginManager([discord.plugin, slack.plugin])

    assert [plugin.slug for plugin in manager.all()] == ["discord", "slack"]
    assert [field.name for field in manager.fields("discord")] == ["webhook_url"]
    with pytest.raises(PluginNotFoundError):
        manager.fields("telegram")


def test_manager_rejects_duplicate_slugs():
    with pytest.raises(ValueError):
        PluginManager([discord.plugin, discord.plugin])


def test_manager_get_unknown_slug(plugins):
    assert plugins.find("myspace") is None
    assert "myspace" not in plugins
    with pytest.raises(PluginNotFoundError):
        plugins.get("myspace")


def test_validate_config_normalises_and_rejects(plugins):
    config = plugins.validate_config("make", {"api_key": "k", "workflow_id": "w", "environment": "staging"})

    assert config == {"api_key": "k", "workflow_id": "w", "environment": "staging", "region": "eu1"}
    with pytest.raises(ValidationError):
        plugins.validate_config("make", {"api_key": "k", "workflow_id": "w", "environment": "qa"})
    with pytest.raises(ValidationError):
        plugins.validate_config("telegram", {"chat_id": "1"})


def test_fields_describe_config_schema(plugins):
    fields = {field.name: field for field in plugins.get("make").fields()}

    assert fields["environment"].type == "enum"
    assert fields["environment"].options == ["production", "staging", "development"]
    assert fields["region"].required is False
    assert fields["region"].default == "eu1"
    assert fields["api_key"].required is True

    mailchimp_fields = {field.name: field for field in plugins.fields("mailchimp")}
    assert mailchimp_fields["double_opt_in"].type == "boolean"


def test_describe_includes_metadata_and_actions(plugins):
    data = describe(plugins.get("make"))

    assert data["slug"] == "make"
    assert data["actions"] == {SEND_EVENT: "Send Event", "send": "Send"}
    assert data["metadata"]["category"] == "automations"
    assert {field["name"] for field in data["fields"]} == {"api_key", "workflow_id", "environment", "region"}


async def test_discord_posts_embed_for_new_lead(mock_http):
    recorder = Recorder(status=204, body={})

    result = await call(discord.plugin, {"webhook_url": "https://discord.com/api/webhooks/1/a"}, "lead.created", LEAD, mock_http(recorder))

    assert result == {"success": True}
    sent = recorder.last_json
    assert str(recorder.requests[0].url) == "https://discord.com/api/webhooks/1/a"
    assert sent["embeds"][0]["title"] == "Ada Lovelace"
    assert {"name": "Email", "value": "Ada@Example.com", "inline": True} in sent["embeds"][0]["fields"]


async def test_discord_submission_lists_submitted_fields(mock_http):
    recorder = Recorder(status=204, body={})

    await call(discord.plugin, {"webhook_url": "https://discord.com/api/webhooks/1/a"}, "submission.created", SUBMISSION, mock_http(recorder))

    fields = recorder.last_json["embeds"][0]["fields"]
    assert {"name": "Company Size", "value": "10-50", "inline": True} in fields
    assert "Contact form" in recorder.last_json["embeds"][0]["description"]


async def test_discord_ignores_other_events(mock_http):
    recorder = Recorder()

    result = await call(discord.plugin, {"webhook_url": "https://discord.com/api/webhooks/1/a"}, "lead.deleted", LEAD, mock_http(recorder))

    assert result["skipped"] is True
    assert recorder.requests == []


async def test_discord_error_status_raises(mock_http):
    with pytest.raises(httpx.HTTPStatusError, match="Discord API error: 400"):
        await call(discord.plugin, {"webhook_url": "https://discord.com/api/webhooks/1/a"}, "lead.created", LEAD, mock_http(Recorder(status=400)))


async def test_slack_posts_blocks_with_channel_override(mock_http):
    recorder = Recorder()
    config = {"webhook_url": "https://hooks.slack.com/services/T/B/X", "channel": "#leads"}

    await call(slack.plugin, config, "lead.created", LEAD, mock_http(recorder))

    sent = recorder.last_json
    assert sent["channel"] == "#leads"
    assert sent["text"] == "🚀 New lead created"
    assert any("Ada Lovelace" in field["text"] for field in sent["blocks"][1]["fields"])


async def test_slack_falls_back_to_json_for_other_events(mock_http):
    recorder = Recorder()

    await call(slack.plugin, {"webhook_url": "https://hooks.slack.com/services/T/B/X"}, "webhook.created", {"id": "wh-1"}, mock_http(recorder))

    sent = recorder.last_json
    assert "channel" not in sent
    assert sent["text"] == "📢 Event: webhook.created"
    assert '"id": "wh-1"' in sent["blocks"][1]["text"]["text"]


async def test_telegram_sends_markdown_message(mock_http):
    recorder = Recorder(body={"ok": True, "result": {"message_id": 7}})

    result = await call(telegram.plugin, {"chat_id": "42", "token": "123:abc"}, "lead.created", LEAD, mock_http(recorder))

    assert result["result"]["message_id"] == 7
    assert str(recorder.requests[0].url) == "https://api.telegram.org/bot123:abc/sendMessage"
    sent = recorder.last_json
    assert sent["chat_id"] == "42"
    assert sent["parse_mode"] == "Markdown"
    assert "*Name:* Ada Lovelace" in sent["text"]


async def test_telegram_surfaces_api_description(mock_http):
    recorder = Recorder(status=400, body={"ok": False, "description": "Bad Request: chat not found"})

    with pytest.raises(httpx.HTTPStatusError, match="chat not found"):
        await call(telegram.plugin, {"chat_id": "42", "token": "123:abc"}, "lead.created", LEAD, mock_http(recorder))


async def test_zapier_posts_event_envelope(mock_http):
    recorder = Recorder(body={"status": "success"})
    config = {"api_key": "k", "workspace_id": "123", "trigger_id": "abc"}

    await call(zapier.plugin, config, "lead.updated", LEAD, mock_http(recorder))

    assert str(recorder.requests[0].url) == "https://hooks.zapier.com/hooks/catch/123/abc/"
    sent = recorder.last_json
    assert sent["event"] == "lead.updated"
    assert sent["data"] == LEAD
    assert sent["source"]
    assert sent["timestamp"]


async def test_make_send_event_uses_bearer_and_region(mock_http):
    recorder = Recorder()
    config = {"api_key": "secret", "workflow_id": "wf1", "environment": "production", "region": "us2"}

    await call(make.plugin, config, "lead.created", LEAD, mock_http(recorder))

    request = recorder.requests[0]
    assert str(request.url) == "https://hook.us2.make.com/wf1"
    assert request.headers["Authorization"] == "Bearer secret"
    assert recorder.last_json["metadata"]["environment"] == "production"


async def test_make_send_action_accepts_plain_text_reply(mock_http):
    def handler(request):
        return httpx.Response(200, text="Accepted", request=request)

    config = {"api_key": "secret", "workflow_id": "wf1", "environment": "staging"}

    result = await call(make.plugin, config, None, {"message": "hello"}, mock_http(handler), action="send")

    assert result == {"accepted": True, "body": "Accepted"}


async def test_mailchimp_upserts_lead_member(mock_http):
    recorder = Recorder(body={"id": "abc", "status": "subscribed"})
    config = {"api_key": "0123456789abcdef-us21", "audience_id": "aud1"}

    result = await call(mailchimp.plugin, config, "lead.created", LEAD, mock_http(recorder))

    request = recorder.requests[0]
    assert request.method == "PUT"
    assert str(request.url) == (
        f"https://us21.api.mailchimp.com/3.0/lists/aud1/members/{subscriber_hash('ada@example.com')}"
    )
    assert request.headers["Authorization"].startswith("Basic ")
    sent = recorder.last_json
    assert sent["status_if_new"] == "subscribed"
    assert sent["merge_fields"]["FNAME"] == "Ada"
    assert sent["merge_fields"]["LNAME"] == "Lovelace"
    assert result == {"success": True, "id": "abc", "status": "subscribed"}


async def test_mailchimp_uses_submission_lead_and_double_opt_in(mock_http):
    recorder = Recorder(body={"id": "abc", "status": "pending"})
    config = {"api_key": "0123456789abcdef-us21", "audience_id": "aud1", "double_opt_in": True}

    await call(mailchimp.plugin, config, "submission.created", SUBMISSION, mock_http(recorder))

    assert recorder.last_json["email_address"] == "ada@example.com"
    assert recorder.last_json["status_if_new"] == "pending"


async def test_mailchimp_skips_events_without_lead(mock_http):
    recorder = Recorder()
    config = {"api_key": "0123456789abcdef-us21", "audience_id": "aud1"}

    result = await call(mailchimp.plugin, config, "webhook.created", {"id": "wh-1"}, mock_http(recorder))

    assert result["skipped"] is True
    assert recorder.requests == []


def test_mailchimp_api_key_needs_datacenter(plugins):
    with pytest.raises(ValidationError):
        plugins.validate_config("mailchimp", {"api_key": "nodatacenter", "audience_id": "aud1"})


def test_send_event_input_allows_any_payload():
    assert SendEventInput(event="lead.created").data is None
    assert SendEventInput(event="lead.created", data=[1, 2]).data == [1, 2]


def test_plugin_is_immutable():
    with pytest.raises(AttributeError):
        discord.plugin.slug = "other"  # type: ignore[misc]
    assert isinstance(discord.plugin, Plugin)
