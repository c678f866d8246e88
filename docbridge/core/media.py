"""Harvesting media files the engine leaves in ``/working/media``."""

from __future__ import annotations

import base64
import mimetypes
import uuid
from pathlib import Path
from typing import Protocol

import anyio

from docbridge.config.constants import MEDIA_DIR
from docbridge.engine.base import EngineHandle
from docbridge.utils.logging import get_logger

log = get_logger(__name__)

_PSEUDO_ENTRIES = {".", ".."}


class BlobStore(Protocol):
    """Turns raw bytes into a dereferenceable URL."""

    async def create_url(self, data: bytes, name: str) -> str: ...


class FileBlobStore:
    """Stores blobs as files and hands out ``file://`` URIs."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    async def create_url(self, data: bytes, name: str) -> str:
        await anyio.Path(self.root).mkdir(parents=True, exist_ok=True)
        # Prefixed so blobs from different documents never collide
        target = self.root / f"{uuid.uuid4().hex[:8]}_{Path(name).name}"
        await anyio.Path(target).write_bytes(data)
        return target.resolve().as_uri()


class DataUriBlobStore:
    """Inlines blobs as ``data:`` URIs."""

    async def create_url(self, data: bytes, name: str) -> str:
        mime_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:{mime_type};base64,{encoded}"


class MediaExtractor:
    """Collects engine media output into a ``media/<name> -> url`` map.

    Unreadable entries are logged and skipped; extraction never fails the
    conversion it follows.
    """

    def __init__(self, blob_store: BlobStore, media_dir: str = MEDIA_DIR) -> None:
        self.blob_store = blob_store
        self.media_dir = media_dir.rstrip("/")

    async def extract(self, handle: EngineHandle) -> dict[str, str]:
        try:
            listing = await anyio.to_thread.run_sync(handle.fs.list, self.media_dir)
        except Exception as e:
            log.warning("Failed to read media directory", directory=self.media_dir, error=str(e))
            return {}
        entries = [e for e in listing if e not in _PSEUDO_ENTRIES]

        media: dict[str, str] = {}

        async def collect(name: str) -> None:
            try:
                data = await anyio.to_thread.run_sync(handle.fs.read, f"{self.media_dir}/{name}")
                url = await self.blob_store.create_url(data, name)
            except Exception as e:
                log.warning("Failed to read media file", file=name, error=str(e))
                return
            media[f"media/{name}"] = url

        async with anyio.create_task_group() as tg:
            for name in entries:
                tg.start_soon(collect, name)

        if media:
            log.debug("Media extracted", count=len(media), skipped=len(entries) - len(media))
        return media
