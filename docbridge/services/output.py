"""Output persistence for reverse conversion results.

Results go to a destination the user picks in an interactive save prompt.
Where no prompt can be shown (no terminal, or disabled in settings) the bytes
are handed over as a download into the configured download directory.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Literal, Protocol

import anyio
import questionary

from docbridge.config.constants import DEFAULT_RELEASE_DELAY
from docbridge.config.settings import OutputConfig
from docbridge.core.formats import get_file_description, get_mime_type
from docbridge.exceptions import SaveCancelledError
from docbridge.utils.fs import get_unique_path
from docbridge.utils.logging import get_logger

log = get_logger(__name__)


class SaveSurface(Protocol):
    """Interactive destination picker."""

    def is_available(self) -> bool: ...

    async def choose_destination(
        self,
        suggested_name: str,
        description: str,
        mime_type: str,
        extension: str,
    ) -> Path:
        """Ask the user where to save.

        Raises:
            SaveCancelledError: If the user dismisses the prompt
        """
        ...


class PromptSaveSurface:
    """Terminal save prompt built on questionary."""

    def __init__(self, default_dir: Path | str = ".", enabled: bool = True) -> None:
        self.default_dir = Path(default_dir)
        self.enabled = enabled

    def is_available(self) -> bool:
        return self.enabled and sys.stdin.isatty() and sys.stdout.isatty()

    async def choose_destination(
        self,
        suggested_name: str,
        description: str,
        mime_type: str,
        extension: str,
    ) -> Path:
        answer = await questionary.path(
            f"Save {description} ({mime_type}) as:",
            default=str(self.default_dir / suggested_name),
        ).ask_async()

        if answer is None or not answer.strip():
            raise SaveCancelledError(suggested_name)

        destination = Path(answer.strip()).expanduser()
        if extension and not destination.suffix:
            destination = destination.with_name(f"{destination.name}.{extension}")
        return destination


class DownloadFallback:
    """Hands bytes over through a transient file copied into a download directory."""

    def __init__(
        self,
        download_dir: Path | str,
        on_conflict: Literal["overwrite", "rename"] = "rename",
        release_delay: float = DEFAULT_RELEASE_DELAY,
    ) -> None:
        self.download_dir = Path(download_dir)
        self.on_conflict = on_conflict
        self.release_delay = release_delay
        self._pending: dict[Path, asyncio.TimerHandle] = {}

    async def download(self, data: bytes, file_name: str) -> Path:
        fd, temp_name = tempfile.mkstemp(prefix="docbridge-", suffix=f"-{file_name}")
        os.close(fd)
        transient = Path(temp_name)

        try:
            await anyio.Path(transient).write_bytes(data)

            await anyio.Path(self.download_dir).mkdir(parents=True, exist_ok=True)
            target = self.download_dir / file_name
            if self.on_conflict == "rename":
                target = get_unique_path(target)

            await anyio.to_thread.run_sync(shutil.copyfile, transient, target)
        finally:
            self._pending[transient] = asyncio.get_running_loop().call_later(
                self.release_delay, self._release, transient
            )

        log.info("File downloaded", path=str(target))
        return target

    def release_all(self) -> None:
        """Remove every transient file still waiting for its release."""
        for transient, handle in list(self._pending.items()):
            handle.cancel()
            self._release(transient)

    def _release(self, transient: Path) -> None:
        self._pending.pop(transient, None)
        try:
            transient.unlink(missing_ok=True)
        except OSError as e:
            log.debug("Failed to release transient file", path=str(transient), error=str(e))


class OutputPersistence:
    """Writes final bytes, preferring the interactive save surface."""

    def __init__(self, surface: SaveSurface, fallback: DownloadFallback) -> None:
        self.surface = surface
        self.fallback = fallback

    @classmethod
    def from_config(cls, config: OutputConfig) -> OutputPersistence:
        return cls(
            surface=PromptSaveSurface(default_dir=config.download_dir, enabled=config.interactive),
            fallback=DownloadFallback(
                config.download_dir,
                on_conflict=config.on_conflict,
                release_delay=config.release_delay,
            ),
        )

    async def save(self, data: bytes, file_name: str) -> Path | None:
        """Persist ``data`` under ``file_name``.

        Returns:
            Where the file was written, or None if the user cancelled
        """
        if not self.surface.is_available():
            return await self.fallback.download(data, file_name)

        _, dot, extension = file_name.rpartition(".")
        extension = extension.lower() if dot else ""

        try:
            destination = await self.surface.choose_destination(
                suggested_name=file_name,
                description=get_file_description(extension),
                mime_type=get_mime_type(extension),
                extension=extension,
            )
        except SaveCancelledError:
            log.info("User cancelled the save operation", file=file_name)
            return None

        await anyio.Path(destination.parent).mkdir(parents=True, exist_ok=True)
        await anyio.Path(destination).write_bytes(data)
        log.info("File saved", path=str(destination))
        return destination

    def close(self) -> None:
        self.fallback.release_all()
