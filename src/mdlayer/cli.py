"""CLI interface for mdlayer.

Typer-based command-line interface with Rich output formatting.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from mdlayer import __version__
from mdlayer.exceptions import DocumentValidationError, MdlayerError
from mdlayer.generate import generate
from mdlayer.project import ProjectManager
from mdlayer.types import GenerationMode, GenerationSummary

__all__ = ["app"]

app = typer.Typer(
    name="mdlayer",
    help="Compile markdown content collections into typed JSON data.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to mdlayer.toml (default: search upwards)"),
]


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _resolve_config_path(config: Path | None) -> Path:
    if config is not None:
        return config
    found = ProjectManager.find_config()
    if found is None:
        console.print(
            "[yellow]No mdlayer.toml found.[/yellow] Run [bold]mdlayer init[/bold] first."
        )
        raise typer.Exit(code=1)
    return found


def _report_error(error: MdlayerError) -> None:
    if isinstance(error, DocumentValidationError):
        console.print(f"[red]{escape(str(error))}[/red]\n  at {escape(error.location)}")
    else:
        console.print(f"[red]{escape(str(error))}[/red]")


def _print_summary(summary: GenerationSummary) -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("metric", style="dim")
    table.add_column("value", style="bold")
    table.add_row("Documents", str(summary.total))
    table.add_row("Generated", str(summary.generated))
    table.add_row("From cache", str(summary.cached))
    console.print(table)


@app.command()
def version() -> None:
    """Show mdlayer version."""
    console.print(f"mdlayer {__version__}")


@app.command()
def init(
    content_dir: Annotated[
        str,
        typer.Option("--content-dir", help="Content directory (relative to the project)"),
    ] = "",
    output_dir: Annotated[
        str,
        typer.Option("--output-dir", help="Output directory (relative to the project)"),
    ] = "",
) -> None:
    """Initialize a new mdlayer project in the current directory."""
    pm = ProjectManager()
    try:
        config_path = pm.init(content_dir=content_dir, output_dir=output_dir)
    except (MdlayerError, OSError) as e:
        console.print(f"[red]Failed to initialize project:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e

    console.print(f"[green]Initialized mdlayer project[/green] at {pm.root}")
    console.print(f"\nCreated:\n  {config_path}")
    console.print("\nNext steps:")
    console.print("  Add a folder per document type under the content directory")
    console.print("  mdlayer build          Generate data once")
    console.print("  mdlayer dev            Generate and watch for changes")


@app.command()
def build(config: ConfigOption = None) -> None:
    """Generate all documents once (production mode)."""
    config_path = _resolve_config_path(config)
    try:
        summary = asyncio.run(generate(GenerationMode.PRODUCTION, config_path))
    except MdlayerError as e:
        _report_error(e)
        raise typer.Exit(code=1) from e
    _print_summary(summary)


@app.command()
def dev(config: ConfigOption = None) -> None:
    """Generate all documents, then regenerate on every change."""
    config_path = _resolve_config_path(config)
    try:
        asyncio.run(generate(GenerationMode.DEVELOPMENT, config_path))
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped watching.[/dim]")
    except MdlayerError as e:
        _report_error(e)
        raise typer.Exit(code=1) from e


@app.command()
def status(config: ConfigOption = None) -> None:
    """Show declared document types and cache state."""
    config_path = _resolve_config_path(config)
    pm = ProjectManager(config_path.parent)
    try:
        st = pm.status()
    except MdlayerError as e:
        _report_error(e)
        raise typer.Exit(code=1) from e

    console.print(f"[bold]mdlayer project:[/bold] {st.root.name}")
    if st.config is not None:
        console.print(f"  Content: {st.config.content.dir}")
        console.print(f"  Output: {st.config.output.dir}")

    if not st.types:
        console.print("\n[dim]No document types declared in mdlayer.toml.[/dim]")
        return

    table = Table(show_header=True, box=None, padding=(0, 2))
    table.add_column("type", style="bold")
    table.add_column("patterns", style="dim")
    table.add_column("schema")
    table.add_column("cached", justify="right")
    for t in st.types:
        table.add_row(t.type, ", ".join(t.patterns), "yes" if t.has_schema else "-", str(t.cached))
    console.print(table)
    console.print(f"\n  Cache entries: {st.cache_entries}")


@app.command()
def clean(config: ConfigOption = None) -> None:
    """Remove generated artifacts and the cache."""
    config_path = _resolve_config_path(config)
    pm = ProjectManager(config_path.parent)
    try:
        removed = pm.clean()
    except (MdlayerError, OSError) as e:
        console.print(f"[red]Failed to clean:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e

    if removed is None:
        console.print("[dim]Nothing to clean.[/dim]")
    else:
        console.print(f"[green]Removed[/green] {removed}")
