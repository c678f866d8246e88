"""Interfaces between docbridge and the external conversion engine.

The engine is opaque: docbridge only sees a loader that brings it up, a
module exposing one entry point, and a private filesystem the entry point
reads from and writes to.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol


class VirtualFileSystem(Protocol):
    """Filesystem capability scoped to the engine's private namespace."""

    def write(self, path: str, data: bytes | str) -> None: ...

    def read(self, path: str) -> bytes: ...

    def list(self, path: str) -> list[str]: ...

    def mkdir(self, path: str) -> None:
        """Create a directory.

        Raises:
            FileExistsError: If the directory already exists
        """
        ...


class EngineModule(Protocol):
    """Engine module as exposed once its bootstrap has run."""

    fs: VirtualFileSystem

    def call_main(self, descriptor_path: str) -> int:
        """Run one task; returns the engine exit status (0 on success)."""
        ...

    def on_runtime_initialized(self, callback: Callable[[], None]) -> None:
        """Register a callback fired once the runtime is usable.

        The callback may be invoked from another thread.
        """
        ...

    def close(self) -> None: ...


class EngineLoader(Protocol):
    """Fetches and runs the engine bootstrap."""

    @property
    def script(self) -> str: ...

    async def load(self) -> None:
        """Load the bootstrap; raises on failure."""
        ...

    def get_module(self) -> EngineModule | None: ...


@dataclass(frozen=True)
class EngineHandle:
    """Ready engine: entry point plus filesystem."""

    module: EngineModule

    @property
    def fs(self) -> VirtualFileSystem:
        return self.module.fs

    def call_main(self, descriptor_path: str) -> int:
        return self.module.call_main(descriptor_path)

    def close(self) -> None:
        self.module.close()
