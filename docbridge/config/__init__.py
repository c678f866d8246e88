"""Configuration for docbridge."""

from docbridge.config.settings import DocbridgeSettings, get_settings, reload_settings

__all__ = ["DocbridgeSettings", "get_settings", "reload_settings"]
