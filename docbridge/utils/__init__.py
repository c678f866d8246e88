"""Utility module for docbridge."""

from docbridge.utils.fs import ensure_directory, get_unique_path
from docbridge.utils.logging import get_logger, setup_logging, setup_task_logging

__all__ = [
    "ensure_directory",
    "get_logger",
    "get_unique_path",
    "setup_logging",
    "setup_task_logging",
]
