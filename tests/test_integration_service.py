"""Tests for plugin installations."""
import pytest

from app.exceptions import NotFoundError, PluginNotFoundError, ValidationError
from app.services.integration_service import IntegrationService

SLACK_CONFIG = {"webhook_url": "https://hooks.slack.com/services/T/B/X"}


async def test_install_stores_validated_config(db, organisation, plugins):
    integration = await IntegrationService(db, plugins).install(organisation.id, "slack", SLACK_CONFIG)

    assert integration.id
    assert integration.provider == "slack"
    assert integration.enabled is True
    assert integration.config == {"webhook_url": "https://hooks.slack.com/services/T/B/X", "channel": None}


async def test_install_can_start_disabled(db, organisation, plugins):
    service = IntegrationService(db, plugins)

    await service.install(organisation.id, "slack", SLACK_CONFIG, enabled=False)

    assert await service.find_enabled_for_organisation(organisation.id) == []


async def test_install_unknown_plugin(db, organisation, plugins):
    with pytest.raises(PluginNotFoundError):
        await IntegrationService(db, plugins).install(organisation.id, "myspace", {})


async def test_install_invalid_config_writes_nothing(db, organisation, plugins):
    service = IntegrationService(db, plugins)

    with pytest.raises(ValidationError):
        await service.install(organisation.id, "telegram", {"chat_id": "42"})

    assert await service.list_for_organisation(organisation.id) == []


async def test_install_twice_is_rejected(db, organisation, plugins):
    service = IntegrationService(db, plugins)
    await service.install(organisation.id, "slack", SLACK_CONFIG)

    with pytest.raises(ValidationError, match="already installed"):
        await service.install(organisation.id, "slack", SLACK_CONFIG)


async def test_same_plugin_in_two_organisations(db, organisation, other_organisation, plugins):
    service = IntegrationService(db, plugins)

    await service.install(organisation.id, "slack", SLACK_CONFIG)
    await service.install(other_organisation.id, "slack", SLACK_CONFIG)

    assert len(await service.list_for_organisation(organisation.id)) == 1
    assert len(await service.list_for_organisation(other_organisation.id)) == 1


async def test_update_merges_config_and_toggles(db, organisation, plugins):
    service = IntegrationService(db, plugins)
    await service.install(organisation.id, "slack", SLACK_CONFIG)

    updated = await service.update(organisation.id, "slack", config={"channel": "#leads"}, enabled=False)

    assert updated.config["webhook_url"] == SLACK_CONFIG["webhook_url"]
    assert updated.config["channel"] == "#leads"
    assert updated.enabled is False


async def test_update_revalidates_merged_config(db, organisation, plugins):
    service = IntegrationService(db, plugins)
    await service.install(organisation.id, "make", {"api_key": "k", "workflow_id": "w", "environment": "staging"})

    with pytest.raises(ValidationError):
        await service.update(organisation.id, "make", config={"environment": "qa"})


async def test_update_not_installed(db, organisation, plugins):
    with pytest.raises(NotFoundError):
        await IntegrationService(db, plugins).update(organisation.id, "slack", enabled=False)


async def test_uninstall_removes_installation(db, organisation, plugins):
    service = IntegrationService(db, plugins)
    await service.install(organisation.id, "slack", SLACK_CONFIG)

    await service.uninstall(organisation.id, "slack")

    assert await service.find_one(organisation.id, "slack") is None


async def test_uninstall_is_scoped_to_organisation(db, organisation, other_organisation, plugins):
    service = IntegrationService(db, plugins)
    await service.install(organisation.id, "slack", SLACK_CONFIG)

    with pytest.raises(NotFoundError):
        await service.uninstall(other_organisation.id, "slack")

    assert await service.find_one(organisation.id, "slack") is not None
