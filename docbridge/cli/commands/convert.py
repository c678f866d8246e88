"""Convert command for forward conversion of a single document."""

import asyncio
from pathlib import Path
from typing import Annotated

import anyio
import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from docbridge.cli.commands import load_settings
from docbridge.config import DocbridgeSettings
from docbridge.core.converter import ConversionResult, DocumentConverter
from docbridge.core.media import FileBlobStore, MediaExtractor
from docbridge.exceptions import DocbridgeError
from docbridge.utils.fs import ensure_directory, get_unique_path
from docbridge.utils.logging import get_logger, setup_task_logging

console = Console()
log = get_logger(__name__)


def convert(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="Input document to convert.",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
            resolve_path=True,
        ),
    ],
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Output directory for the binary and extracted media.",
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
        ),
    ] = None,
    mime_type: Annotated[
        str | None,
        typer.Option(
            "--mime-type",
            help="MIME type of the input, used instead of its extension.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
) -> None:
    """Convert an office document to the engine binary format.

    Examples:
        docbridge convert report.docx
        docbridge convert data.csv -o ./out
    """
    settings = load_settings(console)

    _, log_path = setup_task_logging(
        log_dir=settings.log_dir,
        prefix="convert",
        verbose=verbose,
        file_level=settings.log_level,
    )
    if verbose:
        log.info("Logs will be saved to", log_file=str(log_path))
    log.info("Task Configuration", config=settings.model_dump(mode="json"))

    output_dir = ensure_directory(output or input_file.parent)

    try:
        if verbose:
            result, bin_path = asyncio.run(
                _execute_conversion(input_file, output_dir, mime_type, settings)
            )
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                progress.add_task("Converting...", total=None)
                result, bin_path = asyncio.run(
                    _execute_conversion(input_file, output_dir, mime_type, settings)
                )
    except DocbridgeError as e:
        log.error("Conversion failed", error=str(e), exc_info=True)
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    log.info("Task Completed Successfully", output_path=str(bin_path), media=len(result.media))
    console.print("[bold green]Conversion completed![/bold green]")
    console.print(f"  Type: {result.document_type}")
    console.print(f"  Output: {bin_path}")
    if result.media:
        console.print(f"  Media: {len(result.media)}")


async def _execute_conversion(
    input_file: Path,
    output_dir: Path,
    mime_type: str | None,
    settings: DocbridgeSettings,
) -> tuple[ConversionResult, Path]:
    """Run the conversion and write ``<name>.bin`` next to the media directory."""
    converter = DocumentConverter.from_settings(settings)
    if not settings.media.inline:
        converter.media = MediaExtractor(FileBlobStore(output_dir / settings.media.dir))

    async with converter:
        data = await anyio.Path(input_file).read_bytes()
        result = await converter.convert_document(input_file.name, data, mime_type)

    bin_path = output_dir / f"{result.file_name}.bin"
    if settings.output.on_conflict == "rename":
        bin_path = get_unique_path(bin_path)
    await anyio.Path(bin_path).write_bytes(result.binary_payload)

    return result, bin_path
