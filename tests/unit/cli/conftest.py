"""Fixtures for CLI tests."""

import pytest
from typer.testing import CliRunner

from docbridge.core.converter import DocumentConverter
from docbridge.core.media import DataUriBlobStore, MediaExtractor
from docbridge.engine.lifecycle import EngineManager
from docbridge.services.output import DownloadFallback, OutputPersistence


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def isolated_settings(tmp_path, monkeypatch):
    """Run in an isolated directory without docbridge.yaml."""
    monkeypatch.chdir(tmp_path)
    from docbridge.config.settings import get_settings

    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


@pytest.fixture
def cli_loader(make_loader):
    return make_loader(media={"image1.png": b"png-bytes"})


@pytest.fixture
def fake_engine(monkeypatch, isolated_settings, cli_loader, make_save_surface):
    """Make every CLI command use the in-memory engine."""

    def build(settings=None):
        return DocumentConverter(
            EngineManager(cli_loader, init_timeout=1.0),
            MediaExtractor(DataUriBlobStore()),
            OutputPersistence(
                make_save_surface(available=False),
                DownloadFallback(isolated_settings / "downloads", release_delay=0),
            ),
        )

    monkeypatch.setattr(DocumentConverter, "from_settings", staticmethod(build))
    return cli_loader
