"""Configuration settings using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict, YamlConfigSettingsSource

from docbridge.config.constants import (
    CSV_FORMAT_CODE,
    DEFAULT_CALL_TIMEOUT,
    DEFAULT_CONFIG_FILE,
    DEFAULT_DOWNLOAD_DIR,
    DEFAULT_ENGINE_BASE_PATH,
    DEFAULT_ENGINE_SCRIPT_PATH,
    DEFAULT_INIT_TIMEOUT,
    DEFAULT_LOG_DIR,
    DEFAULT_MEDIA_DIR,
    DEFAULT_RELEASE_DELAY,
)
from docbridge.exceptions import ConfigurationError


class EngineConfig(BaseModel):
    """Conversion engine configuration."""

    base_path: str = DEFAULT_ENGINE_BASE_PATH
    script_path: str = DEFAULT_ENGINE_SCRIPT_PATH
    binary: str | None = None  # Explicit executable, overrides base_path/script_path
    init_timeout: float = Field(default=DEFAULT_INIT_TIMEOUT, gt=0)
    call_timeout: int = Field(default=DEFAULT_CALL_TIMEOUT, ge=1)

    def resolve_script(self) -> Path:
        """Get the bootstrap location."""
        if self.binary:
            return Path(self.binary)
        return Path(self.base_path) / self.script_path


class TabularConfig(BaseModel):
    """CSV handling configuration."""

    try_direct: bool = False  # Try the engine on raw CSV before the xlsx fallback
    format_code: int = CSV_FORMAT_CODE


class OutputConfig(BaseModel):
    """Output persistence configuration."""

    download_dir: str = DEFAULT_DOWNLOAD_DIR
    interactive: bool = True
    on_conflict: Literal["overwrite", "rename"] = "rename"
    release_delay: float = Field(default=DEFAULT_RELEASE_DELAY, ge=0)


class MediaConfig(BaseModel):
    """Extracted media configuration."""

    dir: str = DEFAULT_MEDIA_DIR
    inline: bool = False  # data: URIs instead of files


class DocbridgeSettings(BaseSettings):
    """Main configuration class for docbridge."""

    model_config = SettingsConfigDict(
        env_prefix="DOCBRIDGE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings sources to include YAML file."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=DEFAULT_CONFIG_FILE),
            file_secret_settings,
        )

    engine: EngineConfig = Field(default_factory=EngineConfig)
    tabular: TabularConfig = Field(default_factory=TabularConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    media: MediaConfig = Field(default_factory=MediaConfig)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_dir: str = DEFAULT_LOG_DIR


@lru_cache
def get_settings() -> DocbridgeSettings:
    """Get cached settings instance.

    Raises:
        ConfigurationError: If the environment or config file holds invalid values
    """
    try:
        return DocbridgeSettings()
    except (ValidationError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Invalid docbridge configuration: {e}") from e


def reload_settings() -> DocbridgeSettings:
    """Force reload settings (clear cache)."""
    get_settings.cache_clear()
    return get_settings()
