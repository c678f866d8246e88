"""x2t engine driven as a local executable.

The bootstrap is the ``x2t`` binary shipped under the deployment base path.
Each engine instance gets a private temporary directory standing in for the
engine's ``/working`` namespace; descriptors refer to virtual paths, which
are rewritten to real paths right before the binary runs.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
import threading
import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path, PurePosixPath

import anyio

from docbridge.config.constants import DEFAULT_CALL_TIMEOUT
from docbridge.config.settings import EngineConfig
from docbridge.exceptions import ScriptLoadError
from docbridge.utils.logging import get_logger

log = get_logger(__name__)

# Descriptor elements holding namespace paths
PATH_ELEMENTS = ("m_sFileFrom", "m_sFileTo", "m_sThemeDir", "m_sFontDir")


def probe_binary(binary: Path, timeout: float) -> None:
    """Start x2t once without arguments.

    x2t then prints usage, so any exit status proves the binary runs on this
    host.

    Raises:
        OSError: If the binary cannot be executed
        subprocess.TimeoutExpired: If it does not exit within ``timeout``
    """
    subprocess.run([str(binary)], capture_output=True, timeout=timeout, check=False)


class LocalFileSystem:
    """Virtual filesystem backed by a real directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def resolve(self, path: str) -> Path:
        """Map a virtual absolute path onto the backing directory."""
        parts = [p for p in PurePosixPath(path).parts if p not in ("/", ".")]
        if ".." in parts:
            raise ValueError(f"Path escapes the engine namespace: {path}")
        return self.root.joinpath(*parts)

    def write(self, path: str, data: bytes | str) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.resolve(path).write_bytes(data)

    def read(self, path: str) -> bytes:
        return self.resolve(path).read_bytes()

    def list(self, path: str) -> list[str]:
        return sorted(os.listdir(self.resolve(path)))

    def mkdir(self, path: str) -> None:
        self.resolve(path).mkdir()


class X2TProcessModule:
    """One x2t engine instance with its own working namespace."""

    def __init__(
        self,
        binary: Path,
        root: Path,
        call_timeout: int = DEFAULT_CALL_TIMEOUT,
    ) -> None:
        self.binary = binary
        self.call_timeout = call_timeout
        self.fs = LocalFileSystem(root)

    def on_runtime_initialized(self, callback: Callable[[], None]) -> None:
        """Probe the binary in the background and notify once it runs."""
        threading.Thread(
            target=self._probe,
            args=(callback,),
            name="x2t-probe",
            daemon=True,
        ).start()

    def _probe(self, callback: Callable[[], None]) -> None:
        try:
            probe_binary(self.binary, self.call_timeout)
        except (OSError, subprocess.TimeoutExpired) as e:
            log.error("x2t runtime probe failed", binary=str(self.binary), error=str(e))
            return
        callback()

    def call_main(self, descriptor_path: str) -> int:
        """Run x2t on a descriptor staged in the namespace."""
        host_descriptor = self._localize_descriptor(descriptor_path)
        cmd = [str(self.binary), str(host_descriptor)]

        log.debug("Running x2t", command=" ".join(cmd))
        completed = subprocess.run(
            cmd,
            capture_output=True,
            timeout=self.call_timeout,
            check=False,
        )
        if completed.returncode != 0:
            log.debug(
                "x2t exited with error",
                code=completed.returncode,
                stderr=completed.stderr.decode("utf-8", errors="replace"),
            )
        return completed.returncode

    def _localize_descriptor(self, descriptor_path: str) -> Path:
        tree = ET.ElementTree(ET.fromstring(self.fs.read(descriptor_path)))
        for tag in PATH_ELEMENTS:
            for element in tree.iter(tag):
                text = element.text or ""
                if text.startswith("/"):
                    real = str(self.fs.resolve(text))
                    element.text = real + os.sep if text.endswith("/") else real

        host_path = self.fs.resolve(descriptor_path).with_suffix(".host.xml")
        tree.write(host_path, encoding="utf-8", xml_declaration=True)
        return host_path

    def close(self) -> None:
        shutil.rmtree(self.fs.root, ignore_errors=True)


class X2TLoader:
    """Locates the x2t executable and creates engine instances."""

    def __init__(self, binary: Path | str, call_timeout: int = DEFAULT_CALL_TIMEOUT) -> None:
        self.binary = Path(binary)
        self.call_timeout = call_timeout
        self._loaded = False

    @classmethod
    def from_config(cls, config: EngineConfig) -> X2TLoader:
        """Build a loader, falling back to ``x2t`` on PATH if the bootstrap is missing."""
        script = config.resolve_script()
        if not config.binary and not script.exists():
            found = shutil.which("x2t")
            if found:
                script = Path(found)
        return cls(script, call_timeout=config.call_timeout)

    @property
    def script(self) -> str:
        return str(self.binary)

    async def load(self) -> None:
        await anyio.to_thread.run_sync(self.verify)
        try:
            await anyio.to_thread.run_sync(probe_binary, self.binary, self.call_timeout)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ScriptLoadError(self.script, e) from e
        self._loaded = True

    def verify(self) -> None:
        if not self.binary.is_file():
            raise ScriptLoadError(self.script, FileNotFoundError(self.script))
        if not os.access(self.binary, os.X_OK):
            raise ScriptLoadError(self.script, PermissionError(f"{self.script} is not executable"))

    def get_module(self) -> X2TProcessModule | None:
        if not self._loaded:
            return None
        root = Path(tempfile.mkdtemp(prefix="docbridge-x2t-"))
        return X2TProcessModule(self.binary, root, call_timeout=self.call_timeout)


def check_engine_available(config: EngineConfig) -> dict[str, str | bool]:
    """Report whether the x2t bootstrap can be found and executed."""
    loader = X2TLoader.from_config(config)
    try:
        loader.verify()
    except ScriptLoadError as e:
        return {"x2t": False, "path": loader.script, "error": str(e)}
    return {"x2t": True, "path": loader.script}
