"""Services used by the conversion orchestrator."""

from docbridge.services.output import (
    DownloadFallback,
    OutputPersistence,
    PromptSaveSurface,
    SaveSurface,
)

__all__ = ["DownloadFallback", "OutputPersistence", "PromptSaveSurface", "SaveSurface"]
