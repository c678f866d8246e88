"""Main CLI application using Typer."""

from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console

from docbridge import __version__
from docbridge.cli.commands.check import check
from docbridge.cli.commands.convert import convert
from docbridge.cli.commands.export import export

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="docbridge",
    help="Office document conversion through the x2t engine.",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)

console = Console()

app.command(name="convert", help="Convert a document to the engine binary format.")(convert)
app.command(name="export", help="Convert an engine binary back to a document.")(export)
app.command(name="check", help="Check that the conversion engine is available.")(check)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]docbridge[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """docbridge - office documents to and from the x2t binary format."""
    pass


if __name__ == "__main__":
    app()
