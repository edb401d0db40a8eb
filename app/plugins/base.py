"""
Plugin framework.

A plugin is a third-party integration (Discord, Slack, ...) described by a
slug, a pydantic configuration schema and a table of named actions. The
`PluginManager` is the immutable slug -> plugin registry built once at
process start.
"""
import enum
import types
import typing
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterable, Literal, Mapping

import httpx
from pydantic import AnyUrl, BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticUndefined

from app.exceptions import PluginNotFoundError, ValidationError


# Every installed plugin's `send_event` action is a fan-out candidate
SEND_EVENT = "send_event"


class SendEventInput(BaseModel):
    """Input of the `send_event` action: the event name and its payload."""
    event: str
    data: Any = None


@dataclass(frozen=True)
class PluginContext:
    """What a handler receives: validated config, validated input, HTTP client."""
    config: BaseModel
    input: BaseModel
    http: httpx.AsyncClient


Handler = Callable[[PluginContext], Awaitable[Any]]


@dataclass(frozen=True)
class PluginAction:
    name: str
    schema: type[BaseModel]
    handler: Handler


@dataclass(frozen=True)
class PluginMetadata:
    description: str
    category: str
    developer: str
    website: str
    logo: str | None = None
    verified: bool = True
    published: bool = True
    links: Mapping[str, str] = field(default_factory=dict)


class PluginField(BaseModel):
    """A configuration form field derived from a plugin's config schema."""
    name: str
    type: str
    placeholder: str | None = None
    required: bool = True
    default: Any = None
    options: list[Any] | None = None


@dataclass(frozen=True)
class Plugin:
    slug: str
    name: str
    schema: type[BaseModel]
    actions: Mapping[str, PluginAction]
    metadata: PluginMetadata

    def has_action(self, action: str) -> bool:
        return action in self.actions

    def fields(self) -> list[PluginField]:
        """Describe the config schema as form fields."""
        return fields_from_schema(self.schema)


def _unwrap_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _field_type(annotation: Any) -> tuple[str, list[Any] | None]:
    annotation = _unwrap_optional(annotation)
    origin = typing.get_origin(annotation)

    if origin is Literal:
        return "enum", list(typing.get_args(annotation))
    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return "enum", [member.value for member in annotation]
    if origin in (list, tuple, set, frozenset):
        return "array", None
    if origin is dict:
        return "object", None
    if annotation is bool:
        return "boolean", None
    if annotation in (int, float):
        return "number", None
    if isinstance(annotation, type) and issubclass(annotation, AnyUrl):
        return "url", None
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return "object", None
    return "string", None


def fields_from_schema(schema: type[BaseModel]) -> list[PluginField]:
    fields = []
    for name, info in schema.model_fields.items():
        field_type, options = _field_type(info.annotation)
        default = None if info.default is PydanticUndefined else info.default
        fields.append(PluginField(
            name=name,
            type=field_type,
            placeholder=info.description,
            required=info.is_required(),
            default=default,
            options=options,
        ))
    return fields


class PluginManager:
    """
    Immutable registry of plugins keyed by slug.

    Usage:
        plugins = PluginManager([discord.plugin, slack.plugin])
        plugin = plugins.get("discord")
        await plugin.actions[SEND_EVENT].handler(context)
    """

    def __init__(self, plugins: Iterable[Plugin]):
        registry: dict[str, Plugin] = {}
        for plugin in plugins:
            if plugin.slug in registry:
                raise ValueError(f"Duplicate plugin slug: {plugin.slug}")
            registry[plugin.slug] = plugin
        self._plugins = MappingProxyType(registry)

    def find(self, slug: str) -> Plugin | None:
        return self._plugins.get(slug)

    def get(self, slug: str) -> Plugin:
        plugin = self._plugins.get(slug)
        if plugin is None:
            raise PluginNotFoundError(slug)
        return plugin

    def all(self) -> list[Plugin]:
        return list(self._plugins.values())

    def slugs(self) -> frozenset[str]:
        return frozenset(self._plugins)

    def fields(self, slug: str) -> list[PluginField]:
        return self.get(slug).fields()

    def __contains__(self, slug: object) -> bool:
        return slug in self._plugins

    def validate_config(self, slug: str, config: Mapping[str, Any] | None) -> dict[str, Any]:
        """
        Validate a configuration blob against the plugin's schema.

        Returns:
            The normalised config, JSON-serialisable, ready to store

        Raises:
            PluginNotFoundError: unknown slug
            ValidationError: config does not match the schema
        """
        plugin = self.get(slug)
        try:
            model = plugin.schema.model_validate(dict(config or {}))
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid configuration for {slug}: {exc.errors(include_url=False)}")
        return model.model_dump(mode="json")


def describe(plugin: Plugin) -> dict[str, Any]:
    """Public description of a plugin for listing endpoints."""
    return {
        "slug": plugin.slug,
        "name": plugin.name,
        "actions": {key: action.name for key, action in plugin.actions.items()},
        "fields": [f.model_dump() for f in plugin.fields()],
        "metadata": {
            "description": plugin.metadata.description,
            "category": plugin.metadata.category,
            "developer": plugin.metadata.developer,
            "website": plugin.metadata.website,
            "logo": plugin.metadata.logo,
            "verified": plugin.metadata.verified,
            "published": plugin.metadata.published,
            "links": dict(plugin.metadata.links),
        },
    }


def config_field(description: str, **kwargs) -> Any:
    """Shorthand for a described config field."""
    return Field(description=description, **kwargs)
