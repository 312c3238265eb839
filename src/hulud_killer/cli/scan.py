"""CLI command: hulud-killer scan [PATH] — scan a project for Shai-Hulud IOCs."""

from __future__ import annotations

import json
import sys
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
)
from rich.table import Table

from hulud_killer.config import KillerConfig
from hulud_killer.scanner.engine import ScanEngine, ScanError
from hulud_killer.scanner.models import ScanConfig, ScanResult, Severity
from hulud_killer.scanner.progress import ProgressTracker
from hulud_killer.scanner.rules import (
    RuleRegistry,
    build_registry,
    get_registry,
    load_packages_file,
)

console = Console(stderr=True)

_SEVERITY_COLORS = {
    Severity.CRITICAL: "red",
    Severity.HIGH: "bright_red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "blue",
}

_REFRESH_INTERVAL = 0.1


@click.command()
@click.argument("path", required=False, type=click.Path())
@click.option(
    "--include-node-modules",
    "-n",
    is_flag=True,
    help="Also scan node_modules directories.",
)
@click.option(
    "--json",
    "-j",
    "as_json",
    is_flag=True,
    help="Print results as JSON (non-interactive).",
)
@click.option(
    "--workers",
    "-w",
    type=click.IntRange(min=1),
    default=None,
    help="Number of parallel analysis workers.",
)
def scan(
    path: str | None,
    include_node_modules: bool,
    as_json: bool,
    workers: int | None,
) -> None:
    """Scan PATH (default: current directory) for Shai-Hulud 2.0 indicators."""
    config = KillerConfig.load()

    if path is None:
        if as_json:
            console.print("[red]Error:[/red] Path required for JSON output mode")
            sys.exit(1)
        path = "."

    engine = ScanEngine(
        config=ScanConfig(
            include_node_modules=include_node_modules or config.include_node_modules
        ),
        registry=_load_registry(config),
        max_workers=workers or config.max_workers,
    )

    try:
        if as_json or not sys.stderr.isatty():
            result = engine.scan(path)
        else:
            console.print(
                f"[bold]Hulud Killer[/bold] scanning [cyan]{escape(path)}[/cyan]\n"
            )
            result = _scan_with_progress_bar(engine, path)
    except ScanError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    _print_findings(result, path)
    _print_summary(result)

    if result.summary.critical > 0:
        console.print(
            f"\n[red]{result.summary.critical} critical finding(s) — "
            "this project may be compromised[/red]"
        )
        sys.exit(1)


def _load_registry(config: KillerConfig) -> RuleRegistry:
    if config.extra_packages_file is None:
        return get_registry()
    try:
        extra = load_packages_file(config.extra_packages_file)
    except (OSError, ValueError) as e:
        raise click.ClickException(
            f"Cannot load package list {config.extra_packages_file}: {e}"
        ) from e
    return build_registry(extra_packages=extra)


def _scan_with_progress_bar(engine: ScanEngine, path: str) -> ScanResult:
    """Run the scan on a background thread while drawing its progress.

    The result is taken from the scan's own future.
    """
    tracker = ProgressTracker()
    with ThreadPoolExecutor(max_workers=1) as executor:
        future: Future[ScanResult] = executor.submit(
            engine.scan_with_progress, path, tracker.update
        )
        with Progress(
            SpinnerColumn(),
            TextColumn("[bold]Scanning"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("[dim]{task.fields[current]}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("scan", total=None, current="")
            while not future.done():
                wait([future], timeout=_REFRESH_INTERVAL)
                snap = tracker.snapshot()
                progress.update(
                    task,
                    total=snap.total or None,
                    completed=snap.completed,
                    current=escape(_shorten_path(snap.current_path, path)),
                )
        result = future.result()
    tracker.finish()
    return result


def _print_findings(result: ScanResult, base_dir: str) -> None:
    if not result.findings:
        console.print("[green]No Shai-Hulud indicators found.[/green]")
        return

    findings = sorted(
        result.findings,
        key=lambda f: (f.severity.rank, f.path, f.line or 0),
    )

    table = Table(title="Findings", show_lines=False)
    table.add_column("Severity", style="bold", width=10)
    table.add_column("Type")
    table.add_column("File", style="cyan")
    table.add_column("Line", justify="right")
    table.add_column("Description")
    table.add_column("Context", max_width=50)

    for finding in findings:
        color = _SEVERITY_COLORS.get(finding.severity, "white")
        table.add_row(
            f"[{color}]{finding.severity.value}[/{color}]",
            finding.kind.value,
            escape(_shorten_path(finding.path, base_dir)),
            str(finding.line) if finding.line is not None else "",
            escape(finding.description),
            escape(finding.context or ""),
        )

    console.print(table)


def _print_summary(result: ScanResult) -> None:
    s = result.summary
    console.print(
        f"\nScanned {result.scanned_files} files in {escape(result.scan_path)}"
    )
    console.print(
        f"Total findings: {s.total}  "
        f"([red]{s.critical} critical[/red], "
        f"[bright_red]{s.high} high[/bright_red], "
        f"[yellow]{s.medium} medium[/yellow], "
        f"[blue]{s.low} low[/blue])"
    )


def _shorten_path(file_path: str, base_dir: str) -> str:
    """Shorten file path relative to scan directory."""
    try:
        return str(Path(file_path).relative_to(base_dir))
    except ValueError:
        return file_path
