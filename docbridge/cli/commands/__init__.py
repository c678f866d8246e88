"""CLI commands."""

import typer
from rich.console import Console
from rich.markup import escape

from docbridge.config import DocbridgeSettings, get_settings
from docbridge.exceptions import ConfigurationError


def load_settings(console: Console) -> DocbridgeSettings:
    """Load settings, exiting with an error message if they are invalid."""
    try:
        return get_settings()
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e
