"""Conversion task descriptors understood by the x2t engine."""

from dataclasses import dataclass
from xml.sax.saxutils import escape

from docbridge.config.constants import FONTS_DIR, THEMES_DIR

_DESCRIPTOR_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<TaskQueueDataConvert xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" xmlns:xsd="http://www.w3.org/2001/XMLSchema">
  <m_sFileFrom>{source}</m_sFileFrom>
  <m_sThemeDir>{theme_dir}</m_sThemeDir>
  <m_sFileTo>{dest}</m_sFileTo>
  <m_bIsNoBase64>{no_base64}</m_bIsNoBase64>
  {extra}
</TaskQueueDataConvert>"""


@dataclass(frozen=True)
class ConversionTask:
    """One engine job: read ``source_path``, write ``dest_path``."""

    source_path: str
    dest_path: str
    theme_dir: str = THEMES_DIR
    suppress_base64_media: bool = False
    extra_options: tuple[str, ...] = ()

    def to_xml(self) -> str:
        """Render the descriptor document.

        Extra option fragments are opaque XML and are inserted as-is.
        """
        return _DESCRIPTOR_TEMPLATE.format(
            source=escape(self.source_path),
            theme_dir=escape(self.theme_dir),
            dest=escape(self.dest_path),
            no_base64="true" if self.suppress_base64_media else "false",
            extra="\n  ".join(self.extra_options),
        )


def build_task(source_path: str, dest_path: str, *extra_options: str) -> ConversionTask:
    """Build a descriptor for converting ``source_path`` into ``dest_path``."""
    return ConversionTask(
        source_path=source_path,
        dest_path=dest_path,
        extra_options=tuple(extra_options),
    )


def format_from_option(code: int) -> str:
    """Force the engine to read the source as format ``code``."""
    return f"<m_nFormatFrom>{code}</m_nFormatFrom>"


def font_dir_option(path: str = FONTS_DIR) -> str:
    """Point the engine at a font directory (needed for PDF output)."""
    return f"<m_sFontDir>{escape(path.rstrip('/'))}/</m_sFontDir>"
