"""
Integration Service

Per-organisation plugin installations. Configs are validated against the
plugin's schema before they are stored.

SECURITY: All queries MUST include organisation_id filter.
Failure to do so will result in data leakage between tenants.
"""
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError, ValidationError
from app.logging_config import get_logger
from app.models.integration import Integration
from app.plugins.base import PluginManager


log = get_logger(component="integration_service")


class IntegrationService:
    """Service for installing, configuring and removing plugins."""

    def __init__(self, db: AsyncSession, plugins: PluginManager):
        self.db = db
        self.plugins = plugins

    async def list_for_organisation(self, organisation_id: str) -> list[Integration]:
        """Get every installation for an organisation, enabled or not."""
        stmt = (
            select(Integration)
            .where(Integration.organisation_id == organisation_id)
            .order_by(Integration.provider)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_enabled_for_organisation(self, organisation_id: str) -> list[Integration]:
        """Get the installations whose plugin actions may run."""
        stmt = (
            select(Integration)
            .where(
                Integration.organisation_id == organisation_id,
                Integration.enabled.is_(True)
            )
            .order_by(Integration.provider)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_one(self, organisation_id: str, slug: str) -> Integration | None:
        stmt = select(Integration).where(
            Integration.organisation_id == organisation_id,
            Integration.provider == slug
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def install(
        self,
        organisation_id: str,
        slug: str,
        config: Mapping[str, Any] | None,
        enabled: bool = True,
    ) -> Integration:
        """
        Install a plugin for an organisation.

        Args:
            organisation_id: Owning organisation
            slug: Plugin slug
            config: Provider settings, validated against the plugin schema
            enabled: Whether plugin actions should run straight away

        Returns:
            Newly created Integration

        Raises:
            PluginNotFoundError: no plugin registered under `slug`
            ValidationError: invalid config, or plugin already installed
        """
        validated = self.plugins.validate_config(slug, config)

        if await self.find_one(organisation_id, slug) is not None:
            raise ValidationError(f"Plugin already installed: {slug}")

        integration = Integration(
            organisation_id=organisation_id,
            provider=slug,
            enabled=enabled,
            config=validated,
        )
        self.db.add(integration)
        try:
            await self.db.commit()
        except IntegrityError:
            # Concurrent install of the same plugin
            await self.db.rollback()
            raise ValidationError(f"Plugin already installed: {slug}")
        await self.db.refresh(integration)

        log.info("integration_installed", org_id=organisation_id, plugin=slug)
        return integration

    async def update(
        self,
        organisation_id: str,
        slug: str,
        *,
        enabled: bool | None = None,
        config: Mapping[str, Any] | None = None,
    ) -> Integration:
        """
        Partially update an installation.

        A provided `config` is merged over the stored one and re-validated.

        Raises:
            NotFoundError: plugin not installed for the organisation
            ValidationError: merged config does not match the schema
        """
        integration = await self.find_one(organisation_id, slug)
        if integration is None:
            raise NotFoundError(f"Integration not found: {slug}")

        if config is not None:
            integration.config = self.plugins.validate_config(slug, {**integration.config, **config})
        if enabled is not None:
            integration.enabled = enabled

        await self.db.commit()
        await self.db.refresh(integration)

        log.info("integration_updated", org_id=organisation_id, plugin=slug, enabled=integration.enabled)
        return integration

    async def uninstall(self, organisation_id: str, slug: str) -> None:
        """
        Remove an installation.

        Raises:
            NotFoundError: plugin not installed for the organisation
        """
        integration = await self.find_one(organisation_id, slug)
        if integration is None:
            raise NotFoundError(f"Integration not found: {slug}")

        await self.db.delete(integration)
        await self.db.commit()

        log.info("integration_uninstalled", org_id=organisation_id, plugin=slug)
