"""Check command for engine availability."""

import typer
from rich.console import Console
from rich.table import Table

from docbridge.cli.commands import load_settings
from docbridge.engine.x2t import check_engine_available

console = Console()


def check() -> None:
    """Show where the x2t engine is expected and whether it can run."""
    settings = load_settings(console)
    status = check_engine_available(settings.engine)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Engine", str(status["path"]))
    table.add_row("Available", "[green]yes[/green]" if status["x2t"] else "[red]no[/red]")
    table.add_row("Init Timeout", f"{settings.engine.init_timeout:g}s")
    table.add_row("Call Timeout", f"{settings.engine.call_timeout}s")
    table.add_row("Direct CSV", str(settings.tabular.try_direct))
    table.add_row("Download Directory", settings.output.download_dir)

    console.print(table)

    if not status["x2t"]:
        console.print(f"[red]Error:[/red] {status['error']}")
        raise typer.Exit(1)
