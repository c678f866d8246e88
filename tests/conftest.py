"""Pytest configuration and fixtures."""

import asyncio
import tempfile
import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path, PurePosixPath

import pytest

from docbridge.core import tabular
from docbridge.core.converter import DocumentConverter
from docbridge.core.media import DataUriBlobStore, MediaExtractor
from docbridge.engine.lifecycle import EngineManager
from docbridge.exceptions import SaveCancelledError
from docbridge.services.output import DownloadFallback, OutputPersistence


class MemoryFileSystem:
    """In-memory engine namespace; listings include the "." and ".." entries."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.dirs: set[str] = {"/"}
        self.unreadable: set[str] = set()

    def write(self, path: str, data: bytes | str) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.files[path] = data

    def read(self, path: str) -> bytes:
        if path in self.unreadable or path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    def list(self, path: str) -> list[str]:
        path = path.rstrip("/")
        if path not in self.dirs:
            raise FileNotFoundError(path)
        names = sorted(
            PurePosixPath(p).name for p in self.files if str(PurePosixPath(p).parent) == path
        )
        return [".", "..", *names]

    def mkdir(self, path: str) -> None:
        if path in self.dirs:
            raise FileExistsError(path)
        self.dirs.add(path)


class FakeEngineModule:
    """Engine stand-in: copies ``m_sFileFrom`` to ``m_sFileTo``.

    Args:
        exit_code: Status returned by every call
        media: Files dropped into ``/working/media`` on success
        ready: ``"immediate"`` notifies on registration, ``"manual"`` waits
            for :meth:`fire_ready`
        transform: Optional function applied to the source bytes
    """

    def __init__(
        self,
        exit_code: int = 0,
        media: dict[str, bytes] | None = None,
        ready: str = "immediate",
        transform: Callable[[bytes], bytes] | None = None,
    ) -> None:
        self.fs = MemoryFileSystem()
        self.exit_code = exit_code
        self.media = media or {}
        self.ready = ready
        self.transform = transform
        self.calls: list[str] = []
        self.descriptors: list[str] = []
        self.closed = False
        self._callback: Callable[[], None] | None = None

    def on_runtime_initialized(self, callback: Callable[[], None]) -> None:
        self._callback = callback
        if self.ready == "immediate":
            callback()

    def fire_ready(self) -> None:
        if self._callback is not None:
            self._callback()

    def call_main(self, descriptor_path: str) -> int:
        self.calls.append(descriptor_path)
        descriptor = self.fs.read(descriptor_path).decode("utf-8")
        self.descriptors.append(descriptor)
        if self.exit_code != 0:
            return self.exit_code

        root = ET.fromstring(descriptor)
        source = self.fs.read(root.findtext("m_sFileFrom"))
        if self.transform is not None:
            source = self.transform(source)
        self.fs.write(root.findtext("m_sFileTo"), source)

        for name, data in self.media.items():
            self.fs.write(f"/working/media/{name}", data)
        return 0

    def close(self) -> None:
        self.closed = True


class FakeLoader:
    """Loader handing out :class:`FakeEngineModule` instances."""

    def __init__(
        self,
        delay: float = 0.0,
        failures: int = 0,
        no_module: bool = False,
        **module_kwargs,
    ) -> None:
        self.delay = delay
        self.failures = failures
        self.no_module = no_module
        self.module_kwargs = module_kwargs
        self.load_calls = 0
        self.modules: list[FakeEngineModule] = []

    @property
    def script(self) -> str:
        return "x2t/x2t"

    async def load(self) -> None:
        self.load_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failures:
            self.failures -= 1
            raise RuntimeError("network unreachable")

    def get_module(self) -> FakeEngineModule | None:
        if self.no_module:
            return None
        module = FakeEngineModule(**self.module_kwargs)
        self.modules.append(module)
        return module


class FakeSaveSurface:
    """Save surface answering with a fixed destination or a cancel."""

    def __init__(
        self,
        available: bool = True,
        destination: Path | None = None,
        cancel: bool = False,
    ) -> None:
        self.available = available
        self.destination = destination
        self.cancel = cancel
        self.requests: list[dict[str, str]] = []

    def is_available(self) -> bool:
        return self.available

    async def choose_destination(
        self,
        suggested_name: str,
        description: str,
        mime_type: str,
        extension: str,
    ) -> Path:
        self.requests.append(
            {
                "suggested_name": suggested_name,
                "description": description,
                "mime_type": mime_type,
                "extension": extension,
            }
        )
        if self.cancel:
            raise SaveCancelledError(suggested_name)
        return self.destination


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def reset_spreadsheet_toolkit():
    """Forget the process-wide spreadsheet toolkit between tests."""
    tabular._default_loader.reset()
    yield
    tabular._default_loader.reset()


@pytest.fixture
def loader() -> FakeLoader:
    return FakeLoader()


@pytest.fixture
def save_surface() -> FakeSaveSurface:
    return FakeSaveSurface(available=False)


@pytest.fixture
def converter(loader: FakeLoader, save_surface: FakeSaveSurface, temp_dir: Path):
    """Converter over the fake engine, saving into ``temp_dir/downloads``."""
    return DocumentConverter(
        EngineManager(loader, init_timeout=1.0),
        MediaExtractor(DataUriBlobStore()),
        OutputPersistence(save_surface, DownloadFallback(temp_dir / "downloads", release_delay=0)),
    )


@pytest.fixture
def make_loader() -> type[FakeLoader]:
    """Factory for loaders with custom behaviour."""
    return FakeLoader


@pytest.fixture
def make_module() -> type[FakeEngineModule]:
    """Factory for standalone fake engine modules."""
    return FakeEngineModule


@pytest.fixture
def make_save_surface() -> type[FakeSaveSurface]:
    """Factory for save surfaces with custom answers."""
    return FakeSaveSurface
