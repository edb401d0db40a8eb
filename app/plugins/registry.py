from app.plugins import discord, mailchimp, make, slack, telegram, zapier
from app.plugins.base import PluginManager

BUILTIN_PLUGINS = (
    discord.plugin,
    slack.plugin,
    telegram.plugin,
    zapier.plugin,
    make.plugin,
    mailchimp.plugin,
)


def build_plugin_manager() -> PluginManager:
    """Registry of every plugin shipped with the service."""
    return PluginManager(BUILTIN_PLUGINS)
