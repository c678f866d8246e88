"""Conversion engine access."""

from docbridge.engine.base import EngineHandle, EngineLoader, EngineModule, VirtualFileSystem
from docbridge.engine.lifecycle import EngineManager, Loading, Ready, Uninitialized
from docbridge.engine.x2t import LocalFileSystem, X2TLoader, X2TProcessModule

__all__ = [
    "EngineHandle",
    "EngineLoader",
    "EngineManager",
    "EngineModule",
    "Loading",
    "LocalFileSystem",
    "Ready",
    "Uninitialized",
    "VirtualFileSystem",
    "X2TLoader",
    "X2TProcessModule",
]
