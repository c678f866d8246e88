"""Export command for reverse conversion of an engine binary."""

import asyncio
from pathlib import Path
from typing import Annotated

import anyio
import typer
from rich.console import Console

from docbridge.cli.commands import load_settings
from docbridge.config import DocbridgeSettings
from docbridge.core.converter import BinConversionResult, DocumentConverter
from docbridge.exceptions import DocbridgeError
from docbridge.services.output import DownloadFallback, OutputPersistence, PromptSaveSurface
from docbridge.utils.logging import get_logger, setup_task_logging

console = Console()
log = get_logger(__name__)


def export(
    bin_file: Annotated[
        Path,
        typer.Argument(
            help="Engine binary produced by 'docbridge convert'.",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
            resolve_path=True,
        ),
    ],
    name: Annotated[
        str | None,
        typer.Option(
            "--name",
            "-n",
            help="Original document name. Defaults to the binary's name without '.bin'.",
        ),
    ] = None,
    to: Annotated[
        str,
        typer.Option(
            "--to",
            "-t",
            help="Target format, e.g. DOCX, XLSX, PPTX, PDF, CSV.",
        ),
    ] = "DOCX",
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Directory used when saving without a prompt.",
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
        ),
    ] = None,
    no_prompt: Annotated[
        bool,
        typer.Option(
            "--no-prompt",
            help="Never ask for a destination; save into the output directory.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
) -> None:
    """Convert an engine binary back to an office document.

    Examples:
        docbridge export report.docx.bin
        docbridge export data.csv.bin --to CSV --no-prompt -o ./out
    """
    settings = load_settings(console)

    _, log_path = setup_task_logging(
        log_dir=settings.log_dir,
        prefix="export",
        verbose=verbose,
        file_level=settings.log_level,
    )
    if verbose:
        log.info("Logs will be saved to", log_file=str(log_path))
    log.info("Task Configuration", target=to)

    original_name = name or bin_file.stem

    try:
        result = asyncio.run(
            _execute_export(bin_file, original_name, to, output, no_prompt, settings)
        )
    except DocbridgeError as e:
        log.error("Export failed", error=str(e), exc_info=True)
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if result.saved_to is None:
        console.print("[yellow]Save cancelled.[/yellow]")
        return

    console.print("[bold green]Export completed![/bold green]")
    console.print(f"  Output: {result.saved_to}")


async def _execute_export(
    bin_file: Path,
    original_name: str,
    target_ext: str,
    output_dir: Path | None,
    no_prompt: bool,
    settings: DocbridgeSettings,
) -> BinConversionResult:
    converter = DocumentConverter.from_settings(settings)

    if output_dir is not None or no_prompt:
        config = settings.output
        download_dir = output_dir or Path(config.download_dir)
        converter.output = OutputPersistence(
            PromptSaveSurface(default_dir=download_dir, enabled=config.interactive and not no_prompt),
            DownloadFallback(
                download_dir,
                on_conflict=config.on_conflict,
                release_delay=config.release_delay,
            ),
        )

    async with converter:
        data = await anyio.Path(bin_file).read_bytes()
        return await converter.convert_bin_to_document_and_download(data, original_name, target_ext)
