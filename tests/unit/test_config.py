"""Tests for configuration module."""

from pathlib import Path

import pytest
from pydantic import ValidationError


@pytest.fixture
def isolated_settings(tmp_path, monkeypatch):
    """Run settings tests in an isolated directory without docbridge.yaml."""
    monkeypatch.chdir(tmp_path)
    from docbridge.config.settings import get_settings

    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


class TestDocbridgeSettings:
    """Tests for DocbridgeSettings."""

    def test_default_settings(self, isolated_settings):  # noqa: ARG002
        """Test default settings values."""
        from docbridge.config.settings import DocbridgeSettings

        settings = DocbridgeSettings()

        assert settings.log_level == "INFO"
        assert settings.log_dir == ".logs"

    def test_engine_settings(self, isolated_settings):  # noqa: ARG002
        """Test engine configuration defaults."""
        from docbridge.config.settings import DocbridgeSettings

        settings = DocbridgeSettings()

        assert settings.engine.base_path == "."
        assert settings.engine.script_path == "x2t/x2t"
        assert settings.engine.binary is None
        assert settings.engine.init_timeout == 300.0
        assert settings.engine.call_timeout == 120
        assert settings.engine.resolve_script() == Path("x2t/x2t")

    def test_binary_overrides_script(self):
        from docbridge.config.settings import EngineConfig

        config = EngineConfig(base_path="/opt/app", binary="/usr/local/bin/x2t")
        assert config.resolve_script() == Path("/usr/local/bin/x2t")

    def test_script_under_base_path(self):
        from docbridge.config.settings import EngineConfig

        config = EngineConfig(base_path="/opt/app")
        assert config.resolve_script() == Path("/opt/app/x2t/x2t")

    def test_other_sections(self, isolated_settings):  # noqa: ARG002
        """Test tabular, output and media defaults."""
        from docbridge.config.settings import DocbridgeSettings

        settings = DocbridgeSettings()

        assert settings.tabular.try_direct is False
        assert settings.tabular.format_code == 260
        assert settings.output.download_dir == "downloads"
        assert settings.output.interactive is True
        assert settings.output.on_conflict == "rename"
        assert settings.media.dir == "media"
        assert settings.media.inline is False

    def test_invalid_timeout(self):
        from docbridge.config.settings import EngineConfig

        with pytest.raises(ValidationError):
            EngineConfig(init_timeout=0)

    def test_environment_variable_override(self, isolated_settings, monkeypatch):  # noqa: ARG002
        """Test that environment variables override defaults."""
        from docbridge.config.settings import reload_settings

        monkeypatch.setenv("DOCBRIDGE_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("DOCBRIDGE_ENGINE__INIT_TIMEOUT", "30")

        settings = reload_settings()

        assert settings.log_level == "DEBUG"
        assert settings.engine.init_timeout == 30.0

    def test_get_settings_cached(self, isolated_settings):  # noqa: ARG002
        from docbridge.config.settings import get_settings

        assert get_settings() is get_settings()

    def test_invalid_environment_value(self, isolated_settings, monkeypatch):  # noqa: ARG002
        """Invalid values surface as ConfigurationError."""
        from docbridge.config.settings import get_settings
        from docbridge.exceptions import ConfigurationError

        monkeypatch.setenv("DOCBRIDGE_ENGINE__INIT_TIMEOUT", "0")

        with pytest.raises(ConfigurationError, match="init_timeout"):
            get_settings()


class TestYamlConfigLoading:
    """Tests for YAML configuration loading."""

    def test_yaml_config_loading(self, isolated_settings):
        """Test that settings are loaded from docbridge.yaml."""
        config_content = """
log_level: "WARNING"

engine:
  binary: "/opt/x2t/x2t"
  call_timeout: 60

tabular:
  try_direct: true

output:
  interactive: false
  on_conflict: "overwrite"
"""
        (isolated_settings / "docbridge.yaml").write_text(config_content, encoding="utf-8")

        from docbridge.config.settings import DocbridgeSettings

        settings = DocbridgeSettings()

        assert settings.log_level == "WARNING"
        assert settings.engine.binary == "/opt/x2t/x2t"
        assert settings.engine.call_timeout == 60
        assert settings.tabular.try_direct is True
        assert settings.output.interactive is False
        assert settings.output.on_conflict == "overwrite"

    def test_env_overrides_yaml(self, isolated_settings, monkeypatch):
        (isolated_settings / "docbridge.yaml").write_text('log_level: "WARNING"\n')
        monkeypatch.setenv("DOCBRIDGE_LOG_LEVEL", "ERROR")

        from docbridge.config.settings import DocbridgeSettings

        assert DocbridgeSettings().log_level == "ERROR"

    def test_malformed_yaml(self, isolated_settings):
        (isolated_settings / "docbridge.yaml").write_text("engine: [unclosed\n")

        from docbridge.config.settings import get_settings
        from docbridge.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError, match="Invalid docbridge configuration"):
            get_settings()
