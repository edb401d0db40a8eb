"""Tests for the webhook registry and signing helpers."""
import pytest

from app.exceptions import NotFoundError, ValidationError
from app.services.webhook_service import (
    WebhookService,
    generate_webhook_secret,
    generate_webhook_signature,
    normalise_events,
    verify_webhook_signature,
)


async def test_create_stores_subscription(db, organisation):
    service = WebhookService(db)

    webhook = await service.create(
        organisation.id,
        "https://hooks.example.com/leads",
        ["lead.created", "lead.updated"],
        secret="whsec_fixed",
    )

    assert webhook.id
    assert webhook.organisation_id == organisation.id
    assert webhook.url == "https://hooks.example.com/leads"
    assert webhook.secret == "whsec_fixed"
    assert webhook.events == ["lead.created", "lead.updated"]


async def test_create_generates_secret_when_omitted(db, organisation):
    webhook = await WebhookService(db).create(organisation.id, "https://example.com/hook", ["lead.created"])

    assert webhook.secret.startswith("whsec_")
    assert len(webhook.secret) > len("whsec_") + 20


async def test_create_collapses_duplicate_events(db, organisation):
    webhook = await WebhookService(db).create(
        organisation.id,
        "https://example.com/hook",
        ["lead.created", "lead.deleted", "lead.created"],
    )

    assert webhook.events == ["lead.created", "lead.deleted"]


@pytest.mark.parametrize("url", ["", "not a url", "/relative/path", "ftp://example.com/hook"])
async def test_create_rejects_malformed_url(db, organisation, url):
    with pytest.raises(ValidationError):
        await WebhookService(db).create(organisation.id, url, ["lead.created"])


@pytest.mark.parametrize("events", [[], ["   "], ["lead.created", ""]])
async def test_create_rejects_empty_or_blank_events(db, organisation, events):
    with pytest.raises(ValidationError):
        await WebhookService(db).create(organisation.id, "https://example.com/hook", events)


async def test_create_rejects_unknown_events_when_registry_given(db, organisation, events):
    service = WebhookService(db, events)

    with pytest.raises(ValidationError, match="Unknown event"):
        await service.create(organisation.id, "https://example.com/hook", ["lead.exploded"])


async def test_create_accepts_any_event_without_registry(db, organisation):
    webhook = await WebhookService(db).create(organisation.id, "https://example.com/hook", ["custom.thing"])

    assert webhook.events == ["custom.thing"]


async def test_find_one_is_scoped_to_organisation(db, organisation, other_organisation):
    service = WebhookService(db)
    webhook = await service.create(organisation.id, "https://example.com/hook", ["lead.created"])

    assert (await service.find_one(webhook.id, organisation.id)).id == webhook.id
    assert await service.find_one(webhook.id, other_organisation.id) is None


async def test_find_all_returns_only_own_subscriptions(db, organisation, other_organisation):
    service = WebhookService(db)
    await service.create(organisation.id, "https://a.example.com/hook", ["lead.created"])
    await service.create(organisation.id, "https://b.example.com/hook", ["lead.updated"])
    await service.create(other_organisation.id, "https://c.example.com/hook", ["lead.created"])

    own = await service.find_all_for_organisation(organisation.id)

    assert {webhook.url for webhook in own} == {"https://a.example.com/hook", "https://b.example.com/hook"}


async def test_update_from_other_organisation_is_not_found_and_changes_nothing(db, organisation, other_organisation):
    service = WebhookService(db)
    webhook = await service.create(organisation.id, "https://example.com/hook", ["lead.created"])

    with pytest.raises(NotFoundError):
        await service.update(webhook.id, other_organisation.id, url="https://attacker.example.com")

    stored = await service.find_one(webhook.id, organisation.id)
    assert stored.url == "https://example.com/hook"


async def test_partial_update_keeps_unspecified_fields(db, organisation):
    service = WebhookService(db)
    webhook = await service.create(organisation.id, "https://example.com/hook", ["lead.created"], secret="s1")

    updated = await service.update(webhook.id, organisation.id, events=["lead.updated"])

    assert updated.events == ["lead.updated"]
    assert updated.url == "https://example.com/hook"
    assert updated.secret == "s1"


async def test_update_validates_before_writing(db, organisation):
    service = WebhookService(db)
    webhook = await service.create(organisation.id, "https://example.com/hook", ["lead.created"])

    with pytest.raises(ValidationError):
        await service.update(webhook.id, organisation.id, url="https://new.example.com/hook", events=[])

    stored = await service.find_one(webhook.id, organisation.id)
    assert stored.url == "https://example.com/hook"
    assert stored.events == ["lead.created"]


async def test_update_unknown_id_is_not_found(db, organisation):
    with pytest.raises(NotFoundError):
        await WebhookService(db).update("missing", organisation.id, secret="x")


async def test_delete_removes_subscription(db, organisation):
    service = WebhookService(db)
    webhook = await service.create(organisation.id, "https://example.com/hook", ["lead.created"])

    await service.delete(webhook.id, organisation.id)

    assert await service.find_one(webhook.id, organisation.id) is None


async def test_delete_from_other_organisation_is_not_found(db, organisation, other_organisation):
    service = WebhookService(db)
    webhook = await service.create(organisation.id, "https://example.com/hook", ["lead.created"])

    with pytest.raises(NotFoundError):
        await service.delete(webhook.id, other_organisation.id)

    assert await service.find_one(webhook.id, organisation.id) is not None


def test_normalise_events_preserves_first_seen_order():
    assert normalise_events(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]


def test_normalise_events_rejects_none():
    with pytest.raises(ValidationError):
        normalise_events(None)


def test_signature_round_trip():
    secret = generate_webhook_secret()
    body = '{"id":"lead-1"}'

    signature = generate_webhook_signature(body, secret, 1700000000)

    assert len(signature) == 64
    assert verify_webhook_signature(body, secret, 1700000000, signature)
    assert not verify_webhook_signature(body, secret, 1700000001, signature)
    assert not verify_webhook_signature('{"id":"lead-2"}', secret, 1700000000, signature)
    assert not verify_webhook_signature(body, "whsec_other", 1700000000, signature)


@pytest.mark.parametrize("secret", ["", "   "])
async def test_blank_secret_is_rejected_on_create(db, organisation, secret):
    with pytest.raises(ValidationError):
        await WebhookService(db).create(organisation.id, "https://example.com/hook", ["lead.created"], secret=secret)


@pytest.mark.parametrize("secret", ["", "   "])
async def test_blank_secret_is_rejected_on_update(db, organisation, secret):
    service = WebhookService(db)
    webhook = await service.create(organisation.id, "https://example.com/hook", ["lead.created"], secret="s1")

    with pytest.raises(ValidationError):
        await service.update(webhook.id, organisation.id, secret=secret)

    stored = await service.find_one(webhook.id, organisation.id)
    assert stored.secret == "s1"
