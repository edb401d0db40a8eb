"""
Integration API routes.

Browse the available plugins and manage the organisation's installations.
Mutations are emitted as `integration.*` events.
"""
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import TokenPayload, get_current_user, require_admin
from app.dependencies.fanout import get_dispatcher, get_plugin_manager
from app.exceptions import NotFoundError, ValidationError
from app.models.integration import Integration
from app.plugins.base import Plugin, PluginManager, describe
from app.services.dispatch_service import EventDispatcher
from app.services.integration_service import IntegrationService


router = APIRouter(prefix="/api/integrations", tags=["integrations"])


class InstallIntegrationRequest(BaseModel):
    """Request model for installing a plugin."""
    config: dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True


class UpdateIntegrationRequest(BaseModel):
    """Request model for updating an installation. Config is merged over the stored one."""
    config: dict[str, Any] | None = None
    enabled: bool | None = None


def serialize(plugin: Plugin, installation: Integration | None, include_config: bool = True) -> dict:
    """Plugin description plus installation state. Stored credentials are only shown to admins."""
    data = describe(plugin)
    data["installed"] = installation is not None
    data["installation"] = None
    if installation is not None:
        data["installation"] = {
            "id": installation.id,
            "enabled": installation.enabled,
            "created_at": installation.created_at.isoformat(),
            "updated_at": installation.updated_at.isoformat(),
        }
        if include_config:
            data["installation"]["config"] = installation.config
    return data


def integration_event_payload(integration: Integration) -> dict:
    """Event payload for integration.* events; never includes the config."""
    return {"id": integration.id, "provider": integration.provider, "enabled": integration.enabled}


def is_admin(token: TokenPayload) -> bool:
    return token.role == "admin"


def get_plugin_or_404(plugins: PluginManager, slug: str) -> Plugin:
    plugin = plugins.find(slug)
    if plugin is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Plugin not found: {slug}"
        )
    return plugin


@router.get("/", response_model=list[dict])
async def list_integrations(
    token: TokenPayload = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    plugins: PluginManager = Depends(get_plugin_manager)
):
    """List every available plugin with the organisation's installation state."""
    installations = await IntegrationService(db, plugins).list_for_organisation(token.org_id)
    by_provider = {installation.provider: installation for installation in installations}
    return [serialize(plugin, by_provider.get(plugin.slug), is_admin(token)) for plugin in plugins.all()]


@router.get("/{slug}", response_model=dict)
async def get_integration(
    slug: str,
    token: TokenPayload = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    plugins: PluginManager = Depends(get_plugin_manager)
):
    """Describe a plugin, including its configuration fields."""
    plugin = get_plugin_or_404(plugins, slug)
    installation = await IntegrationService(db, plugins).find_one(token.org_id, slug)
    return serialize(plugin, installation, is_admin(token))


@router.post("/{slug}", response_model=dict, status_code=status.HTTP_201_CREATED)
async def install_integration(
    slug: str,
    request: InstallIntegrationRequest,
    token: TokenPayload = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    plugins: PluginManager = Depends(get_plugin_manager),
    dispatcher: EventDispatcher = Depends(get_dispatcher)
):
    """Install a plugin for the organisation."""
    plugin = get_plugin_or_404(plugins, slug)

    try:
        integration = await IntegrationService(db, plugins).install(
            token.org_id,
            slug,
            request.config,
            enabled=request.enabled
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )

    await dispatcher.dispatch("integration.installed", token.org_id, integration_event_payload(integration))
    return serialize(plugin, integration)


@router.put("/{slug}", response_model=dict)
async def update_integration(
    slug: str,
    request: UpdateIntegrationRequest,
    token: TokenPayload = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    plugins: PluginManager = Depends(get_plugin_manager),
    dispatcher: EventDispatcher = Depends(get_dispatcher)
):
    """Enable, disable or reconfigure an installed plugin."""
    plugin = get_plugin_or_404(plugins, slug)

    try:
        integration = await IntegrationService(db, plugins).update(
            token.org_id,
            slug,
            enabled=request.enabled,
            config=request.config
        )
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Integration not installed"
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )

    await dispatcher.dispatch("integration.updated", token.org_id, integration_event_payload(integration))
    return serialize(plugin, integration)


@router.delete("/{slug}", response_model=dict)
async def uninstall_integration(
    slug: str,
    token: TokenPayload = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    plugins: PluginManager = Depends(get_plugin_manager),
    dispatcher: EventDispatcher = Depends(get_dispatcher)
):
    """Remove a plugin installation."""
    get_plugin_or_404(plugins, slug)

    try:
        await IntegrationService(db, plugins).uninstall(token.org_id, slug)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Integration not installed"
        )

    await dispatcher.dispatch("integration.uninstalled", token.org_id, {"provider": slug})
    return {"message": "Integration removed successfully"}
