"""CSV fallback pipeline.

The engine does not reliably read or write delimited text, so CSV is routed
through an intermediate xlsx workbook built and read with openpyxl. The
spreadsheet library is imported lazily, once per process.

Only the first sheet of a workbook is exported back to CSV; additional
sheets are dropped.
"""

from __future__ import annotations

import asyncio
import csv
import importlib
import io
import math
import re
from datetime import date, datetime, time
from types import ModuleType
from typing import TYPE_CHECKING, Any

import anyio

from docbridge.config.constants import UTF8_BOM
from docbridge.exceptions import TabularConversionError
from docbridge.utils.logging import get_logger

if TYPE_CHECKING:
    from openpyxl import Workbook
    from openpyxl.worksheet.worksheet import Worksheet

log = get_logger(__name__)

_INTEGER = re.compile(r"0|-?[1-9]\d{0,14}")

_SEP_DIRECTIVE = re.compile(r"sep=(.)\r?(?:\n|$)")

_DELIMITERS = ",;\t|"

_SNIFF_SAMPLE = 1024


def _coerce_cell(raw: str) -> Any:
    """Turn CSV text into a cell value, keeping text whose number form differs."""
    if raw == "":
        return None
    if _INTEGER.fullmatch(raw):
        return int(raw)
    try:
        number = float(raw)
    except ValueError:
        return raw
    # "1.50", "2.0", "1e3", "nan" keep their spelling as text
    if not math.isfinite(number) or number.is_integer() or repr(number) != raw:
        return raw
    return number


def _format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def detect_delimiter(text: str) -> tuple[str, str]:
    """Find the field delimiter of CSV text.

    A leading Excel ``sep=X`` line wins and is removed from the text.
    Otherwise the delimiter is sniffed from the start of the text among
    comma, semicolon, tab and pipe, defaulting to comma.

    Returns:
        Tuple of (delimiter, text without the ``sep=`` line)
    """
    directive = _SEP_DIRECTIVE.match(text)
    if directive:
        return directive.group(1), text[directive.end() :]

    sample = text[:_SNIFF_SAMPLE]
    if len(text) > _SNIFF_SAMPLE and "\n" in sample:
        sample = sample[: sample.rindex("\n")]

    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=_DELIMITERS)
    except csv.Error:
        return ",", text
    if dialect.delimiter not in _DELIMITERS:
        return ",", text
    return dialect.delimiter, text


class SpreadsheetToolkit:
    """Spreadsheet capability backed by openpyxl."""

    def __init__(self, openpyxl: ModuleType) -> None:
        self._openpyxl = openpyxl

    def parse(self, text: str) -> Workbook:
        """Parse delimited text into a single-sheet workbook."""
        workbook = self._openpyxl.Workbook()
        sheet = workbook.active
        sheet.title = "Sheet1"

        delimiter, text = detect_delimiter(text)
        if delimiter != ",":
            log.debug("CSV delimiter detected", delimiter=delimiter)

        reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
        for row_idx, row in enumerate(reader, start=1):
            for col_idx, raw in enumerate(row, start=1):
                value = _coerce_cell(raw)
                if value is None:
                    continue
                cell = sheet.cell(row=row_idx, column=col_idx, value=value)
                if isinstance(value, str) and value.startswith("="):
                    # CSV content is data, never a formula
                    cell.data_type = "s"
        return workbook

    def serialize(self, workbook: Workbook, target_format: str = "xlsx") -> bytes:
        if target_format.lower() != "xlsx":
            raise ValueError(f"Unsupported workbook format: {target_format}")
        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    def load(self, data: bytes) -> Workbook:
        return self._openpyxl.load_workbook(io.BytesIO(data), data_only=True)

    def first_sheet(self, workbook: Workbook) -> Worksheet:
        return workbook.worksheets[0]

    def sheet_to_delimited_text(self, sheet: Worksheet) -> str:
        """Render a sheet as comma-separated text, rows joined by ``\\n``."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        for row in sheet.iter_rows(values_only=True):
            writer.writerow([_format_cell(value) for value in row])
        return buffer.getvalue().removesuffix("\n")


class SpreadsheetToolkitLoader:
    """Load-once holder for the spreadsheet toolkit.

    Concurrent first callers share a single import; a failed import is
    forgotten so the next call tries again.
    """

    def __init__(self, module_name: str = "openpyxl") -> None:
        self.module_name = module_name
        self._toolkit: SpreadsheetToolkit | None = None
        self._pending: asyncio.Task[SpreadsheetToolkit] | None = None

    @property
    def loaded(self) -> bool:
        return self._toolkit is not None

    async def get(self) -> SpreadsheetToolkit:
        if self._toolkit is not None:
            return self._toolkit

        if self._pending is None:
            self._pending = asyncio.create_task(self._load())
        pending = self._pending

        try:
            toolkit = await asyncio.shield(pending)
        except Exception:
            if self._pending is pending:
                self._pending = None
            raise

        self._toolkit = toolkit
        self._pending = None
        return toolkit

    async def _load(self) -> SpreadsheetToolkit:
        module = await anyio.to_thread.run_sync(importlib.import_module, self.module_name)
        log.info("Spreadsheet library loaded", module=self.module_name)
        return SpreadsheetToolkit(module)

    def reset(self) -> None:
        self._toolkit = None
        self._pending = None


_default_loader = SpreadsheetToolkitLoader()


async def load_spreadsheet_toolkit() -> SpreadsheetToolkit:
    """Get the process-wide spreadsheet toolkit."""
    return await _default_loader.get()


def decode_tabular_bytes(data: bytes) -> str:
    """Decode CSV bytes: drop a UTF-8 BOM, read UTF-8, else Latin-1."""
    if data.startswith(UTF8_BOM):
        data = data[len(UTF8_BOM) :]
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        log.debug("CSV is not valid UTF-8, decoding as Latin-1")
        return data.decode("latin-1")


def prepare_direct_tabular(data: bytes) -> bytes:
    """Ensure a BOM for a direct engine attempt on raw CSV."""
    return data if data.startswith(UTF8_BOM) else UTF8_BOM + data


async def tabular_to_intermediate(data: bytes) -> bytes:
    """Convert CSV bytes to xlsx bytes.

    Raises:
        TabularConversionError: If the input is empty or cannot be parsed
    """
    if not data:
        raise TabularConversionError("convert CSV file", "CSV file is empty")

    try:
        toolkit = await load_spreadsheet_toolkit()

        def build() -> bytes:
            workbook = toolkit.parse(decode_tabular_bytes(data))
            return toolkit.serialize(workbook, "xlsx")

        xlsx = await anyio.to_thread.run_sync(build)
    except Exception as e:
        raise TabularConversionError("convert CSV to XLSX", str(e), cause=e) from e

    log.debug("CSV converted to XLSX", csv_bytes=len(data), xlsx_bytes=len(xlsx))
    return xlsx


async def intermediate_to_tabular(xlsx: bytes) -> bytes:
    """Convert xlsx bytes to BOM-prefixed UTF-8 CSV of the first sheet.

    Raises:
        TabularConversionError: If the workbook cannot be read
    """
    try:
        toolkit = await load_spreadsheet_toolkit()

        def export() -> str:
            workbook = toolkit.load(xlsx)
            return toolkit.sheet_to_delimited_text(toolkit.first_sheet(workbook))

        text = await anyio.to_thread.run_sync(export)
    except Exception as e:
        raise TabularConversionError("convert XLSX to CSV", str(e), cause=e) from e

    return UTF8_BOM + text.encode("utf-8")
