"""Typer-based CLI for the declaration bundler."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import load_settings
from .errors import DtsBundleError
from .models import DeclarationTree, Diagnostic
from .oracle import SymbolTableOracle
from .parser import TreeSitterDeclarationParser
from .pipeline import BundlePipeline, format_diagnostic, read_declaration, write_atomic
from .rewriter import ImportPathRewriter

console = Console()

app = typer.Typer(
    help="📦 dtsbundle: post-process emitted TypeScript declarations into a publishable bundle.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"dtsbundle v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every rewrite decision."),
):
    """Fix module specifiers, merge interfaces and prune broken heritage clauses."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _fail(exc: Exception) -> None:
    console.print(f"[red]✗[/red] {escape(str(exc))}")
    raise typer.Exit(code=1)


def _print_diagnostics(diagnostics: Sequence[Diagnostic], tree: Optional[DeclarationTree]) -> None:
    for diagnostic in diagnostics:
        console.print(
            f"TS{diagnostic.code} {format_diagnostic(diagnostic, tree)}",
            markup=False,
            highlight=False,
            soft_wrap=True,
        )


@app.command("fix")
def fix(
    project_dir: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Project root."),
    generate: bool = typer.Option(False, "--generate", "-g", help="Run tsc to emit declarations first."),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to dtsbundle.toml."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write here instead of in place."),
):
    """Run the full pipeline on a project's emitted declaration bundle."""
    try:
        settings = load_settings(project_dir, config_file)
        result = BundlePipeline(settings).run(project_dir, generate=generate, output=output)
    except DtsBundleError as exc:
        _fail(exc)
        return

    _print_diagnostics(result.diagnostics, result.source)

    table = Table(title="Bundle summary", show_header=True, header_style="bold cyan")
    table.add_column("Step")
    table.add_column("Count", justify="right")
    table.add_row("Diagnostics", str(len(result.diagnostics)))
    table.add_row("Merged modules", str(len(result.stats.merged_modules)))
    table.add_row("Filtered modules", str(len(result.stats.filtered_modules)))
    table.add_row("Pruned heritage", str(len(result.stats.pruned_references)))
    table.add_row("Emptied extends", str(len(result.stats.emptied_interfaces)))
    console.print(table)
    console.print(f"[green]✓[/green] Wrote {escape(str(result.output_path))}")


@app.command("rewrite-imports")
def rewrite_imports(
    input_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Declaration file to rewrite."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write here instead of in place."),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to dtsbundle.toml."),
):
    """Apply only the module-specifier rewrite rules."""
    target = output or input_file
    try:
        settings = load_settings(input_file.parent, config_file)
        text = ImportPathRewriter(settings).rewrite(read_declaration(input_file))
        write_atomic(target, text)
    except DtsBundleError as exc:
        _fail(exc)
        return
    console.print(f"[green]✓[/green] File processing complete, saved as {escape(str(target))}")


@app.command("check")
def check(
    bundle: Path = typer.Argument(..., exists=True, dir_okay=False, help="Declaration file to check."),
):
    """Report the diagnostics the heritage pruner would act on."""
    try:
        parser = TreeSitterDeclarationParser()
        tree = parser.parse(read_declaration(bundle), str(bundle))
    except DtsBundleError as exc:
        _fail(exc)
        return
    diagnostics = SymbolTableOracle([tree]).diagnostics()
    if not diagnostics:
        console.print("[green]✓[/green] No diagnostics.")
        return
    _print_diagnostics(diagnostics, tree)
    console.print(f"\n[yellow]{len(diagnostics)} diagnostic(s)[/yellow]")
    raise typer.Exit(code=1)
