"""Command-line interface for diffscope."""

import dataclasses
import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.traceback import install

from .config import ReviewConfiguration
from .core import FileOrder, GitSourceProvider, ReviewResult, ReviewService
from .analyzers import UsageReport
from .errors import DiffScopeError

# Set up rich error handling
install()
console = Console()

IMPACT_STYLES = {'high': 'red', 'medium': 'yellow', 'low': 'green'}


def _configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@click.group()
@click.option('--repo', '-r', type=click.Path(exists=True, file_okay=False), default='.',
              envvar='DIFFSCOPE_REPO', show_default=True, help='Path to the git repository')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, repo, verbose):
    """diffscope - Dependency-aware review of code changes

    Orders the files of a change by their import dependencies, lists the
    declarations a change touches, and finds where those declarations are
    used elsewhere in the codebase.

    USAGE:
        diffscope diff main feature --order bottom-up
        diffscope symbols main feature --format json
        diffscope usages main feature --output usages.json --format json
        diffscope branches
    """
    _configure_logging(verbose)
    ctx.obj = ReviewConfiguration(repo_path=repo)


def _service(config: ReviewConfiguration) -> ReviewService:
    return ReviewService(GitSourceProvider(config.repo_path), config=config)


@cli.command()
@click.argument('base')
@click.argument('compare')
@click.option('--order', type=click.Choice([o.value for o in FileOrder]),
              default=FileOrder.BOTTOM_UP.value, show_default=True, help='Review order')
@click.option('--format', '-f', 'fmt', type=click.Choice(['text', 'json']), default='text',
              help='Output format')
@click.option('--output', '-o', type=click.Path(), help='Output file for the results')
@click.pass_obj
def diff(config, base, compare, order, fmt, output):
    """List the changed files between BASE and COMPARE in review order."""
    try:
        result = _service(config).get_ordered_files(base, compare, FileOrder(order))
    except DiffScopeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise click.Abort()

    if fmt == 'json':
        _write_json(_review_result_data(result), output)
    else:
        _display_review_result(result)


@cli.command()
@click.argument('base')
@click.argument('compare')
@click.option('--format', '-f', 'fmt', type=click.Choice(['text', 'json']), default='text',
              help='Output format')
@click.option('--output', '-o', type=click.Path(), help='Output file for the results')
@click.pass_obj
def symbols(config, base, compare, fmt, output):
    """List the declarations of the files changed between BASE and COMPARE."""
    try:
        service = _service(config)
        files = service.get_diff(base, compare)
        file_symbols = service.extract_symbols(files, compare)
    except DiffScopeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise click.Abort()

    if fmt == 'json':
        _write_json([dataclasses.asdict(entry) for entry in file_symbols], output)
        return

    table = Table(title=f"Declarations in {base}...{compare}")
    table.add_column("File", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Kind", style="magenta")
    table.add_column("Line", justify="right")
    table.add_column("Exported")
    for entry in file_symbols:
        for symbol in entry.symbols:
            name = f"{symbol.owning_class}.{symbol.name}" if symbol.owning_class else symbol.name
            table.add_row(entry.path, name, symbol.kind.value, str(symbol.definition_line),
                          "yes" if symbol.is_exported else "")
    console.print(table)


@cli.command()
@click.argument('base')
@click.argument('compare')
@click.option('--format', '-f', 'fmt', type=click.Choice(['text', 'json']), default='text',
              help='Output format')
@click.option('--output', '-o', type=click.Path(), help='Output file for the results')
@click.option('--batch-size', type=click.IntRange(min=1), help='Files extracted per batch')
@click.option('--workers', type=click.IntRange(min=1), help='Worker threads for the usage scan')
@click.pass_obj
def usages(config, base, compare, fmt, output, batch_size, workers):
    """Find usages of the declarations changed between BASE and COMPARE."""
    if batch_size is not None:
        config = dataclasses.replace(config, batch_size=batch_size)
    if workers is not None:
        config = dataclasses.replace(config, scan_workers=workers)

    try:
        with console.status("[bold green]Scanning for usages...[/bold green]"):
            report = _service(config).find_external_usages(base, compare)
    except DiffScopeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise click.Abort()

    if fmt == 'json':
        _write_json(dataclasses.asdict(report), output)
    else:
        _display_usage_report(report)


@cli.command()
@click.pass_obj
def branches(config):
    """List the local branches that can be compared."""
    try:
        names = GitSourceProvider(config.repo_path).list_branches()
    except DiffScopeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise click.Abort()

    for name in sorted(names):
        click.echo(name)


def _review_result_data(result: ReviewResult) -> dict:
    return {
        'order': result.order.value,
        'is_approximate': result.is_approximate,
        'fell_back': result.fell_back,
        'files': [
            {
                'path': f.path,
                'old_path': f.old_path,
                'is_new': f.is_new,
                'is_deleted': f.is_deleted,
                'added': f.added_count,
                'removed': f.removed_count,
                'dependencies': result.graph.dependencies_of(f.path) if result.graph else [],
                'dependents': result.graph.dependents_of(f.path) if result.graph else [],
                'modified_declarations': [
                    dataclasses.asdict(d) for d in result.modified_declarations.get(f.path, [])
                ],
            }
            for f in result.files
        ],
        'cycles': result.graph.cycles() if result.graph else [],
    }


def _write_json(data, output):
    json_output = json.dumps(data, indent=2, default=str)
    if output:
        Path(output).write_text(json_output)
        console.print(f"Results saved to {output}")
    else:
        click.echo(json_output)


def _display_review_result(result: ReviewResult):
    if result.fell_back:
        console.print("[yellow]Dependency ordering failed; showing alphabetical order[/yellow]")
    elif result.is_approximate:
        console.print("[yellow]Import cycles found; order within a cycle is approximate[/yellow]")

    table = Table(title=f"Changed files ({result.order.value})")
    table.add_column("#", justify="right")
    table.add_column("File", style="cyan")
    table.add_column("+", style="green", justify="right")
    table.add_column("-", style="red", justify="right")
    table.add_column("Modified declarations", style="magenta")

    for index, f in enumerate(result.files, 1):
        path = f.path
        if f.is_deleted:
            path += " [red](deleted)[/red]"
        elif f.is_new:
            path += " [green](new)[/green]"
        elif f.old_path:
            path = f"{f.old_path} -> {f.path}"
        declarations = ", ".join(d.name for d in result.modified_declarations.get(f.path, []))
        table.add_row(str(index), path, str(f.added_count), str(f.removed_count), declarations)

    console.print(table)


def _display_usage_report(report: UsageReport):
    console.print(f"\n[bold]External usages[/bold]: {report.total_usages} in "
                  f"{len(report.affected_files)} of {report.total_files_scanned} files "
                  f"({report.duration_ms:.0f} ms)")

    if not report.affected_files:
        return

    table = Table()
    table.add_column("File", style="cyan")
    table.add_column("Impact")
    table.add_column("Symbol", style="bold")
    table.add_column("Usage", style="magenta")
    table.add_column("Line", justify="right")
    table.add_column("Context", overflow="fold")

    for affected in report.affected_files:
        style = IMPACT_STYLES[affected.impact_level.value]
        for usage in affected.usages:
            table.add_row(affected.path, f"[{style}]{affected.impact_level.value}[/{style}]",
                          usage.name, usage.usage_kind.value, str(usage.line), usage.context)

    console.print(table)


if __name__ == '__main__':
    cli()
