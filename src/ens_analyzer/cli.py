"""Typer CLI entry point for ens-analyzer."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from ens_analyzer import __version__
from ens_analyzer.analyzer import RepositoryAnalyzer
from ens_analyzer.config import Settings, format_validation_error
from ens_analyzer.exceptions import EnsAnalyzerError
from ens_analyzer.input_parser import parse_input
from ens_analyzer.logging import configure_logging, generate_batch_id
from ens_analyzer.models import ClassificationResult
from ens_analyzer.report_output import (
    generate_report_filename,
    stars,
    write_json_report,
    write_markdown_report,
)


console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="ens-analyzer",
    help="Scan repositories for ENS integration and rank how deeply they use it.",
    no_args_is_help=True,
)

_SAMPLE_SIZE = 5


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings(
    config_path: Path | None = None,
    **overrides: Any,
) -> Settings:
    """Load settings with error handling and user-friendly messages."""
    from pydantic import ValidationError

    try:
        return Settings.load(config_path=config_path, **overrides)
    except ValidationError as exc:
        err_console.print(
            Panel(
                format_validation_error(exc),
                title="Configuration Error",
                border_style="red",
            )
        )
        raise typer.Exit(code=1) from exc


def _display_error(exc: Exception, title: str = "Analysis Failed") -> None:
    err_console.print(
        Panel(
            f"[bold red]{type(exc).__name__}:[/bold red] {exc}",
            title=title,
            border_style="red",
        )
    )


def _setup(
    config: Path | None, verbose: bool, **overrides: Any
) -> tuple[Settings, str]:
    if verbose:
        overrides["logging"] = {"level": "DEBUG"}
    settings = _load_settings(config, **overrides)
    batch_id = generate_batch_id()
    configure_logging(
        level=settings.logging.level,
        fmt=settings.logging.format,
        log_file=settings.logging.file,
        batch_id=batch_id,
    )
    return settings, batch_id


def _create_progress() -> Progress:
    """Create a Rich progress bar with spinner, text, bar, and time columns."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=err_console,
    )


def _display_result(result: ClassificationResult) -> None:
    """Print one repository verdict as a Rich table plus evidence list."""
    table = Table(title=f"Analysis Results for {result.repository_id}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Rating", f"{stars(result.rating)} ({result.rating}/5)")
    table.add_row("Confidence", result.confidence.value)
    table.add_row(
        "Integration Types",
        ", ".join(t.value for t in result.integration_types) or "-",
    )
    table.add_row("Summary", result.summary)
    table.add_row("Duration", f"{result.elapsed_ms}ms")
    console.print(table)

    if result.top_evidence:
        console.print(f"\n[bold]Evidence[/bold] ({len(result.top_evidence)} items):")
        for index, item in enumerate(result.top_evidence[:_SAMPLE_SIZE], start=1):
            location = item.source_url or f"{item.location.file}:{item.location.line}"
            console.print(
                f"  {index}. {item.kind.value}: {item.pattern} ({item.confidence.value})"
            )
            console.print(f"     [dim]{location}[/dim]")
        remaining = len(result.top_evidence) - _SAMPLE_SIZE
        if remaining > 0:
            console.print(f"  ... and {remaining} more items")


# ---------------------------------------------------------------------------
# Version callback
# ---------------------------------------------------------------------------


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]ens-analyzer[/bold] {__version__}")
        raise typer.Exit


@app.callback()
def common(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """ens-analyzer global options."""


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def analyze(
    input_file: Annotated[
        Path,
        typer.Option("--input", "-i", help="CSV or JSON file with repository URLs."),
    ],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Report file (default: timestamped name)."),
    ] = None,
    concurrent: Annotated[
        int | None,
        typer.Option("--concurrent", "-c", help="Max concurrent analyses."),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", "-t", help="Timeout per repository in seconds."),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Write the report as JSON."),
    ] = False,
    config: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config YAML file."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging."),
    ] = False,
) -> None:
    """Analyze every repository listed in an input file and write a report."""
    analyzer_overrides: dict[str, Any] = {}
    if concurrent is not None:
        analyzer_overrides["max_concurrent"] = concurrent
    if timeout is not None:
        analyzer_overrides["timeout_seconds"] = timeout
    overrides: dict[str, Any] = {}
    if analyzer_overrides:
        overrides["analyzer"] = analyzer_overrides
    if json_output:
        overrides["report"] = {"format": "json"}

    settings, batch_id = _setup(config, verbose, **overrides)

    try:
        urls = parse_input(input_file)
        console.print(f"Found [bold]{len(urls)}[/bold] repositories to analyze")

        analyzer = RepositoryAnalyzer.from_settings(settings)
        with _create_progress() as progress:
            task = progress.add_task("Analyzing repositories", total=len(urls))

            def _advance(result: ClassificationResult) -> None:
                progress.update(
                    task, advance=1, description=f"[cyan]{result.repository_id}[/cyan]"
                )

            batch = asyncio.run(analyzer.analyze_batch(urls, on_result=_advance))

        as_json = settings.report.format == "json"
        path = output or settings.report.output_dir / generate_report_filename(
            ".json" if as_json else ".md"
        )
        if as_json:
            write_json_report(batch, path)
        else:
            write_markdown_report(batch, path)
    except EnsAnalyzerError as exc:
        _display_error(exc)
        raise typer.Exit(code=1) from exc

    summary = batch.summary
    console.print(f"\n[green]Report saved:[/green] {path}")
    console.print(
        f"Found {summary.integrated_count}/{batch.total} ENS projects "
        f"({summary.integrated_percentage}%)"
    )
    console.print(f"Average rating: {summary.average_rating:.1f}/5")
    console.print(f"[dim]Batch ID: {batch_id}[/dim]")


@app.command()
def single(
    url: Annotated[str, typer.Option("--url", "-u", help="Repository URL.")],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print the result as JSON."),
    ] = False,
    config: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config YAML file."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging."),
    ] = False,
) -> None:
    """Analyze a single repository."""
    settings, _ = _setup(config, verbose)

    try:
        analyzer = RepositoryAnalyzer.from_settings(settings)
    except EnsAnalyzerError as exc:
        _display_error(exc)
        raise typer.Exit(code=1) from exc

    result = asyncio.run(analyzer.analyze_with_timeout(url))

    if json_output:
        typer.echo(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))
    else:
        _display_result(result)

    if result.failed:
        raise typer.Exit(code=1)


@app.command()
def validate(
    input_file: Annotated[
        Path,
        typer.Option("--input", "-i", help="CSV or JSON file to validate."),
    ],
) -> None:
    """Check that an input file contains repository URLs."""
    try:
        urls = parse_input(input_file)
    except EnsAnalyzerError as exc:
        _display_error(exc, title="Validation Failed")
        raise typer.Exit(code=1) from exc

    console.print("[green]Input file is valid[/green]")
    console.print(f"Found {len(urls)} repository URLs")
    console.print("\nSample URLs:")
    for index, url in enumerate(urls[:_SAMPLE_SIZE], start=1):
        console.print(f"  {index}. {url}")
    if len(urls) > _SAMPLE_SIZE:
        console.print(f"  ... and {len(urls) - _SAMPLE_SIZE} more")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
