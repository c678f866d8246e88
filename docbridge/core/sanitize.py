"""Filename sanitizing for names staged in the engine namespace."""

import re
from typing import Any

from docbridge.config.constants import (
    FALLBACK_EXTENSION,
    FALLBACK_FILENAME,
    FALLBACK_STEM,
    MAX_STEM_LENGTH,
)

_ILLEGAL_CHARS = re.compile(r'[/?<>\\:*|"]')
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x80-\x9f]")
_RESERVED_STEM = re.compile(r"^\.+$")
_UNSAFE_CHARS = re.compile(r"[&'%!\"{}\[\]]")
_TRAILING_EXTENSION = re.compile(r"\.[^/.]+$")


def _strip_hazards(value: str) -> str:
    value = _ILLEGAL_CHARS.sub("", value)
    value = _CONTROL_CHARS.sub("", value)
    value = _RESERVED_STEM.sub("", value)
    return _UNSAFE_CHARS.sub("", value)


def sanitize_filename(name: Any) -> str:
    """Normalize an arbitrary user filename into a filesystem-safe name.

    The part after the last dot is kept as the extension (``bin`` when there
    is none). The stem loses path and shell hazards, control characters,
    dot-only names and markup/quoting characters, is trimmed, replaced by
    ``file`` when empty and cut to 200 characters.

    Examples:
        >>> sanitize_filename("a/b<c>.docx")
        'abc.docx'
        >>> sanitize_filename("")
        'file.bin'
    """
    if not isinstance(name, str) or not name.strip():
        return FALLBACK_FILENAME

    stem, dot, extension = name.rpartition(".")
    if not dot:
        stem, extension = name, ""

    extension = _strip_hazards(extension).strip() or FALLBACK_EXTENSION
    stem = _strip_hazards(stem).strip() or FALLBACK_STEM

    return f"{stem[:MAX_STEM_LENGTH]}.{extension}"


def strip_extension(name: str) -> str:
    """Drop the trailing extension, if any."""
    return _TRAILING_EXTENSION.sub("", name)
