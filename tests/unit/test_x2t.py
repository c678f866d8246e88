"""Tests for the x2t process engine."""

import asyncio
import threading
import xml.etree.ElementTree as ET

import pytest

from docbridge.config.settings import EngineConfig
from docbridge.core.task import build_task, font_dir_option
from docbridge.engine.lifecycle import EngineManager
from docbridge.engine.x2t import LocalFileSystem, X2TLoader, X2TProcessModule, check_engine_available
from docbridge.exceptions import ScriptLoadError


@pytest.fixture
def fake_x2t(temp_dir):
    """Shell script standing in for x2t; copies FileFrom to FileTo via sed."""
    script = temp_dir / "bin" / "x2t"
    script.parent.mkdir()
    script.write_text(
        "#!/bin/sh\n"
        '[ -z "$1" ] && exit 0\n'
        "src=$(sed -n 's:.*<m_sFileFrom>\\(.*\\)</m_sFileFrom>.*:\\1:p' \"$1\")\n"
        "dst=$(sed -n 's:.*<m_sFileTo>\\(.*\\)</m_sFileTo>.*:\\1:p' \"$1\")\n"
        'cp "$src" "$dst"\n'
    )
    script.chmod(0o755)
    return script


class TestLocalFileSystem:
    """Tests for LocalFileSystem."""

    def test_resolve(self, temp_dir):
        fs = LocalFileSystem(temp_dir)
        assert fs.resolve("/working/media/a.png") == temp_dir / "working" / "media" / "a.png"

    def test_rejects_parent_references(self, temp_dir):
        with pytest.raises(ValueError, match="escapes"):
            LocalFileSystem(temp_dir).resolve("/working/../../etc/passwd")

    def test_write_read_list(self, temp_dir):
        fs = LocalFileSystem(temp_dir)
        fs.mkdir("/working")

        fs.write("/working/b.xml", "<x/>")
        fs.write("/working/a.bin", b"\x00\x01")

        assert fs.read("/working/b.xml") == b"<x/>"
        assert fs.list("/working") == ["a.bin", "b.xml"]

    def test_mkdir_existing(self, temp_dir):
        fs = LocalFileSystem(temp_dir)
        fs.mkdir("/working")

        with pytest.raises(FileExistsError):
            fs.mkdir("/working")


class TestX2TProcessModule:
    """Tests for X2TProcessModule."""

    def test_call_main_runs_binary(self, temp_dir, fake_x2t):
        """Virtual paths are rewritten to real ones before x2t runs."""
        module = X2TProcessModule(fake_x2t, temp_dir / "ns")
        (temp_dir / "ns").mkdir()
        module.fs.mkdir("/working")
        module.fs.write("/working/a.docx", b"payload")
        module.fs.write(
            "/working/params.xml",
            build_task("/working/a.docx", "/working/a.docx.bin", font_dir_option()).to_xml(),
        )

        code = module.call_main("/working/params.xml")

        assert code == 0
        assert module.fs.read("/working/a.docx.bin") == b"payload"

        host = ET.parse(temp_dir / "ns" / "working" / "params.host.xml").getroot()
        assert host.findtext("m_sFileFrom") == str(temp_dir / "ns" / "working" / "a.docx")
        assert host.findtext("m_sFontDir").endswith("fonts/")

    def test_call_main_returns_exit_code(self, temp_dir):
        script = temp_dir / "failing-x2t"
        script.write_text("#!/bin/sh\nexit 89\n")
        script.chmod(0o755)
        module = X2TProcessModule(script, temp_dir / "ns")
        (temp_dir / "ns" / "working").mkdir(parents=True)
        module.fs.write("/working/params.xml", build_task("/a", "/b").to_xml())

        assert module.call_main("/working/params.xml") == 89

    def test_runtime_probe_notifies(self, temp_dir, fake_x2t):
        module = X2TProcessModule(fake_x2t, temp_dir)
        ready = threading.Event()

        module.on_runtime_initialized(ready.set)

        assert ready.wait(timeout=5)

    def test_runtime_probe_failure_never_notifies(self, temp_dir):
        module = X2TProcessModule(temp_dir / "missing", temp_dir)
        ready = threading.Event()

        module.on_runtime_initialized(ready.set)

        assert not ready.wait(timeout=0.5)

    def test_close_removes_namespace(self, temp_dir, fake_x2t):
        root = temp_dir / "ns"
        root.mkdir()
        X2TProcessModule(fake_x2t, root).close()
        assert not root.exists()


class TestX2TLoader:
    """Tests for X2TLoader."""

    def test_from_config_binary(self, temp_dir):
        loader = X2TLoader.from_config(EngineConfig(binary=str(temp_dir / "x2t"), call_timeout=30))

        assert loader.script == str(temp_dir / "x2t")
        assert loader.call_timeout == 30

    def test_from_config_base_path(self, temp_dir, fake_x2t):
        loader = X2TLoader.from_config(EngineConfig(base_path=str(temp_dir), script_path="bin/x2t"))
        assert loader.script == str(fake_x2t)

    async def test_load_missing_binary(self, temp_dir):
        loader = X2TLoader(temp_dir / "missing")

        with pytest.raises(ScriptLoadError):
            await loader.load()

        assert loader.get_module() is None

    async def test_load_not_executable(self, temp_dir):
        binary = temp_dir / "x2t"
        binary.write_text("")
        binary.chmod(0o644)
        loader = X2TLoader(binary)

        # root can execute anything with an execute bit; none is set here
        with pytest.raises(ScriptLoadError):
            await loader.load()

    async def test_load_unrunnable_binary(self, temp_dir):
        """A binary the host cannot execute fails at load, not at the readiness timeout."""
        binary = temp_dir / "x2t"
        binary.write_bytes(b"\x7fELF\x00\x00not-a-real-executable")
        binary.chmod(0o755)
        loader = X2TLoader(binary)

        with pytest.raises(ScriptLoadError) as exc_info:
            await loader.load()

        assert isinstance(exc_info.value.cause, OSError)
        assert loader.get_module() is None

    async def test_engine_manager_fails_fast_on_unrunnable_binary(self, temp_dir):
        binary = temp_dir / "x2t"
        binary.write_bytes(b"\x7fELF\x00\x00not-a-real-executable")
        binary.chmod(0o755)
        manager = EngineManager(X2TLoader(binary), init_timeout=300)

        with pytest.raises(ScriptLoadError):
            await asyncio.wait_for(manager.initialize(), timeout=10)

    async def test_get_module_after_load(self, fake_x2t):
        loader = X2TLoader(fake_x2t)
        await loader.load()

        module = loader.get_module()
        try:
            assert isinstance(module, X2TProcessModule)
            assert module.fs.root.is_dir()
            assert module.fs.root.name.startswith("docbridge-x2t-")
        finally:
            module.close()

    async def test_engine_manager_end_to_end(self, fake_x2t):
        """The manager brings a real x2t process engine up and tears it down."""
        manager = EngineManager(X2TLoader(fake_x2t), init_timeout=5)

        handle = await manager.initialize()
        root = handle.module.fs.root

        assert (root / "working" / "media").is_dir()
        manager.destroy()
        assert not root.exists()


class TestCheckEngineAvailable:
    """Tests for check_engine_available."""

    def test_available(self, fake_x2t):
        status = check_engine_available(EngineConfig(binary=str(fake_x2t)))
        assert status == {"x2t": True, "path": str(fake_x2t)}

    def test_missing(self, temp_dir):
        status = check_engine_available(EngineConfig(binary=str(temp_dir / "missing")))

        assert status["x2t"] is False
        assert "missing" in status["error"]
