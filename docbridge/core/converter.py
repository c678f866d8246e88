"""Document conversion orchestrator.

Forward conversions turn an office document into the engine's internal
binary format plus a media map; reverse conversions turn that binary back
into a target format and persist it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType

import anyio

from docbridge.config.constants import CSV_FORMAT_CODE, WORKING_DIR
from docbridge.config.settings import DocbridgeSettings, get_settings
from docbridge.core.executor import run_task
from docbridge.core.formats import DocumentType, detect_extension, get_document_type, is_tabular
from docbridge.core.media import DataUriBlobStore, FileBlobStore, MediaExtractor
from docbridge.core.sanitize import sanitize_filename, strip_extension
from docbridge.core.tabular import (
    intermediate_to_tabular,
    prepare_direct_tabular,
    tabular_to_intermediate,
)
from docbridge.core.task import build_task, font_dir_option, format_from_option
from docbridge.engine.base import EngineHandle
from docbridge.engine.lifecycle import EngineManager
from docbridge.engine.x2t import X2TLoader
from docbridge.exceptions import ConversionFailedError, TabularConversionError
from docbridge.services.output import OutputPersistence
from docbridge.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ConversionResult:
    """Result of a forward conversion."""

    file_name: str
    document_type: DocumentType
    binary_payload: bytes
    media: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class BinConversionResult:
    """Result of a reverse conversion."""

    file_name: str
    data: bytes
    saved_to: Path | None = None  # None when the user cancelled the save


class DocumentConverter:
    """Stages documents on the engine, runs conversions and collects results.

    The engine's ``/working`` namespace is shared by every call, so
    conversions on one instance run one at a time.
    """

    def __init__(
        self,
        engine: EngineManager,
        media: MediaExtractor,
        output: OutputPersistence,
        *,
        try_direct_tabular: bool = False,
        tabular_format_code: int = CSV_FORMAT_CODE,
    ) -> None:
        self.engine = engine
        self.media = media
        self.output = output
        self.try_direct_tabular = try_direct_tabular
        self.tabular_format_code = tabular_format_code
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: DocbridgeSettings | None = None) -> DocumentConverter:
        """Wire a converter for the x2t executable from configuration."""
        settings = settings or get_settings()

        engine = EngineManager(
            X2TLoader.from_config(settings.engine),
            init_timeout=settings.engine.init_timeout,
        )
        blob_store = DataUriBlobStore() if settings.media.inline else FileBlobStore(settings.media.dir)

        return cls(
            engine,
            MediaExtractor(blob_store),
            OutputPersistence.from_config(settings.output),
            try_direct_tabular=settings.tabular.try_direct,
            tabular_format_code=settings.tabular.format_code,
        )

    async def __aenter__(self) -> DocumentConverter:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.destroy()
        self.output.close()

    async def initialize(self) -> EngineHandle:
        return await self.engine.initialize()

    async def convert_document(
        self,
        file_name: str,
        data: bytes,
        mime_type: str | None = None,
    ) -> ConversionResult:
        """Convert a document into the engine's binary format.

        Args:
            file_name: Name the user gave the file
            data: File content
            mime_type: Optional MIME type, preferred over the name's extension

        Raises:
            UnsupportedFormatError: Unknown extension (nothing is staged)
            ConversionFailedError: Engine returned a non-zero status
            TabularConversionError: Any step of the CSV route failed
        """
        extension = detect_extension(file_name, mime_type)
        document_type = get_document_type(extension)

        handle = await self.engine.initialize()

        async with self._lock:
            if is_tabular(extension):
                result = await self._convert_tabular(handle, file_name, data, document_type)
            else:
                sanitized = sanitize_filename(file_name)
                binary = await self._stage_and_run(handle, sanitized, data)
                media = await self.media.extract(handle)
                result = ConversionResult(sanitized, document_type, binary, media)

        log.info(
            "Document converted",
            file=result.file_name,
            type=result.document_type,
            size=len(result.binary_payload),
            media=len(result.media),
        )
        return result

    async def convert_path(self, path: Path | str) -> ConversionResult:
        """Convert a local file."""
        path = Path(path)
        data = await anyio.Path(path).read_bytes()
        return await self.convert_document(path.name, data)

    async def _stage_and_run(
        self,
        handle: EngineHandle,
        file_name: str,
        data: bytes,
        *extra_options: str,
    ) -> bytes:
        input_path = f"{WORKING_DIR}/{file_name}"
        await anyio.to_thread.run_sync(handle.fs.write, input_path, data)
        return await run_task(handle, build_task(input_path, f"{input_path}.bin", *extra_options))

    async def _convert_tabular(
        self,
        handle: EngineHandle,
        file_name: str,
        data: bytes,
        document_type: DocumentType,
    ) -> ConversionResult:
        sanitized = sanitize_filename(file_name)
        if not data:
            raise TabularConversionError("convert CSV file", "CSV file is empty")

        log.info("CSV file detected", file=file_name, size=len(data))

        if self.try_direct_tabular:
            try:
                binary = await self._stage_and_run(
                    handle,
                    sanitized,
                    prepare_direct_tabular(data),
                    format_from_option(self.tabular_format_code),
                )
            except ConversionFailedError as e:
                log.warning("Direct CSV conversion failed, using XLSX route", code=e.code)
            else:
                media = await self.media.extract(handle)
                return ConversionResult(sanitized, document_type, binary, media)

        try:
            xlsx = await tabular_to_intermediate(data)
            log.debug("CSV converted to XLSX, converting with engine", file=file_name)
            binary = await self._stage_and_run(handle, f"{strip_extension(sanitized)}.xlsx", xlsx)
            media = await self.media.extract(handle)
        except TabularConversionError:
            raise
        except Exception as e:
            raise TabularConversionError("convert CSV file", str(e), cause=e) from e

        # Report the CSV name the caller asked for, not the intermediate
        return ConversionResult(sanitized, document_type, binary, media)

    async def convert_bin_to_document_and_download(
        self,
        bin_data: bytes,
        original_file_name: str,
        target_ext: str = "DOCX",
    ) -> BinConversionResult:
        """Convert engine binary to ``target_ext`` and persist it.

        A cancelled save is not an error: the result is returned with
        ``saved_to`` set to None.
        """
        target = target_ext.strip().lstrip(".").upper()
        base = strip_extension(sanitize_filename(original_file_name))
        output_name = f"{base}.{target.lower()}"
        bin_path = f"{WORKING_DIR}/{base}.bin"

        handle = await self.engine.initialize()

        async with self._lock:
            await anyio.to_thread.run_sync(handle.fs.write, bin_path, bin_data)

            if target == "CSV":
                # Only the first sheet survives this route
                xlsx = await run_task(handle, build_task(bin_path, f"{WORKING_DIR}/{base}.xlsx"))
                data = await intermediate_to_tabular(xlsx)
            else:
                extra = (font_dir_option(),) if target == "PDF" else ()
                data = await run_task(
                    handle, build_task(bin_path, f"{WORKING_DIR}/{output_name}", *extra)
                )

        saved_to = await self.output.save(data, output_name)
        log.info("Binary converted", file=output_name, size=len(data), saved=saved_to is not None)
        return BinConversionResult(output_name, data, saved_to)

    def destroy(self) -> None:
        """Tear the engine down; the next call starts a fresh one."""
        self.engine.destroy()
