"""Static format tables: document types, MIME types and descriptions."""

from typing import Literal

from docbridge.exceptions import UnsupportedFormatError

DocumentType = Literal["word", "cell", "slide"]

# Extensions the engine accepts, by editor type
DOCUMENT_TYPE_MAP: dict[str, DocumentType] = {
    "docx": "word",
    "doc": "word",
    "odt": "word",
    "rtf": "word",
    "txt": "word",
    "xlsx": "cell",
    "xls": "cell",
    "ods": "cell",
    "csv": "cell",
    "pptx": "slide",
    "ppt": "slide",
    "odp": "slide",
}

# Formats the engine cannot ingest directly
TABULAR_EXTENSIONS = {"csv"}

MIME_TYPES: dict[str, str] = {
    # Documents
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "doc": "application/msword",
    "odt": "application/vnd.oasis.opendocument.text",
    "rtf": "application/rtf",
    "txt": "text/plain",
    "pdf": "application/pdf",
    # Spreadsheets
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "xls": "application/vnd.ms-excel",
    "ods": "application/vnd.oasis.opendocument.spreadsheet",
    "csv": "text/csv",
    # Presentations
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "ppt": "application/vnd.ms-powerpoint",
    "odp": "application/vnd.oasis.opendocument.presentation",
    # Images
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "webp": "image/webp",
    "svg": "image/svg+xml",
}

FILE_DESCRIPTIONS: dict[str, str] = {
    "docx": "Word Document",
    "doc": "Word 97-2003 Document",
    "odt": "OpenDocument Text",
    "pdf": "PDF Document",
    "xlsx": "Excel Workbook",
    "xls": "Excel 97-2003 Workbook",
    "ods": "OpenDocument Spreadsheet",
    "pptx": "PowerPoint Presentation",
    "ppt": "PowerPoint 97-2003 Presentation",
    "odp": "OpenDocument Presentation",
    "txt": "Text Document",
    "rtf": "Rich Text Format",
    "csv": "CSV File",
}

DEFAULT_MIME_TYPE = "application/octet-stream"
DEFAULT_DESCRIPTION = "Document"

# First extension wins for MIME types shared by several extensions (jpg/jpeg)
_EXTENSION_BY_MIME: dict[str, str] = {}
for _ext, _mime in MIME_TYPES.items():
    _EXTENSION_BY_MIME.setdefault(_mime, _ext)


def get_document_type(extension: str) -> DocumentType:
    """Map an extension to its document type.

    Raises:
        UnsupportedFormatError: If the extension has no entry
    """
    doc_type = DOCUMENT_TYPE_MAP.get(extension.lower().lstrip("."))
    if doc_type is None:
        raise UnsupportedFormatError(extension)
    return doc_type


def get_mime_type(extension: str) -> str:
    return MIME_TYPES.get(extension.lower().lstrip("."), DEFAULT_MIME_TYPE)


def get_file_description(extension: str) -> str:
    return FILE_DESCRIPTIONS.get(extension.lower().lstrip("."), DEFAULT_DESCRIPTION)


def detect_extension(file_name: str, mime_type: str | None = None) -> str:
    """Work out the source extension, preferring a known MIME type over the name."""
    if mime_type:
        ext = _EXTENSION_BY_MIME.get(mime_type.split(";", 1)[0].strip().lower())
        if ext:
            return ext
    _, dot, ext = file_name.rpartition(".")
    return ext.lower() if dot else ""


def is_tabular(extension: str) -> bool:
    return extension.lower().lstrip(".") in TABULAR_EXTENSIONS
