"""
genie — CLI entrypoint.

Usage:
    genie                       # generate every *.genie.py under cwd
    genie --check               # CI: fail if any generated file is stale
    genie --dry-run             # show what would change
    genie --watch               # regenerate on template changes
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from genie import __version__
from genie.core.config.loader import ConfigError, load_config
from genie.core.context import GenieState
from genie.core.engine.orchestrator import RunReport, check_all, generate_all
from genie.core.errors import DuplicateTargetError
from genie.core.observability.logging_config import configure_from_cli

_STATUS_STYLE = {
    "created": ("✓", "green"),
    "updated": ("✓", "cyan"),
    "unchanged": ("·", None),
    "skipped": ("⊘", "yellow"),
    "failed": ("✗", "red"),
}


def _relative(path: Path, cwd: Path) -> str:
    try:
        return str(path.relative_to(cwd))
    except ValueError:
        return str(path)


def _print_report(report: RunReport, *, verbose: bool, quiet: bool) -> None:
    cwd = report.cwd

    if not quiet:
        for outcome in report.outcomes:
            if outcome.status == "unchanged" and not verbose:
                continue
            marker, color = _STATUS_STYLE[outcome.status]
            line = f"   {marker} {_relative(outcome.target_path, cwd)}"
            if outcome.status == "updated" and outcome.diff_summary:
                line += f"  {outcome.diff_summary}"
            elif outcome.status == "skipped":
                line += f"  ({outcome.reason})"
            click.secho(line, fg=color)
            if outcome.failed:
                for err_line in report.message_for(outcome).split("\n")[:5]:
                    click.echo(f"     │ {err_line}")

    if report.reference_warnings and not quiet:
        click.echo()
        click.secho("⚠️  Tsconfig reference warnings:", fg="yellow")
        for warning in report.reference_warnings:
            click.echo(f"   {warning.config_path}:")
            for ref in warning.missing_references:
                click.echo(f"     - Missing reference: {ref}")
            for ref in warning.extra_references:
                click.echo(f"     - Extra reference (not in package.json deps): {ref}")

    click.echo()
    label = {"generate": "Summary", "dry-run": "Dry run", "check": "Check"}[report.mode]
    click.secho(f"   {label}: {report.total} file(s) processed", bold=True)
    for status in ("created", "updated", "unchanged", "skipped", "failed"):
        count = getattr(report, status)
        if count:
            marker, color = _STATUS_STYLE[status]
            click.secho(f"     {marker} {count} {status}", fg=color)

    if not report.all_ok:
        click.echo()
        click.secho(f"❌ {report.failure_message}", fg="red", bold=True)
    elif report.mode == "check" and report.total:
        click.secho("✅ All generated files are up to date", fg="green")


@click.command()
@click.version_option(version=__version__, prog_name="genie")
@click.option(
    "--cwd",
    "cwd",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    help="Directory to search for *.genie.py templates.",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to genie.yml (default: auto-detect).",
)
@click.option("--watch", is_flag=True, help="Watch templates and regenerate on change.")
@click.option("--writeable", is_flag=True, help="Generate files writable (default: read-only).")
@click.option("--check", is_flag=True, help="Fail if generated files are out of date (CI).")
@click.option("--dry-run", is_flag=True, help="Preview changes without writing files.")
@click.option(
    "--formatter-config",
    type=click.Path(exists=False),
    default=None,
    help="Formatter config file (default: .oxfmtrc.json or oxfmt.json in cwd).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
def cli(
    cwd: Path,
    config_path: Path | None,
    watch: bool,
    writeable: bool,
    check: bool,
    dry_run: bool,
    formatter_config: str | None,
    as_json: bool,
    verbose: bool,
    quiet: bool,
    debug: bool,
) -> None:
    """Generate files from *.genie.py templates."""
    configure_from_cli(debug=debug, verbose=verbose, quiet=quiet)

    cwd = cwd.resolve()

    try:
        config = load_config(config_path, start_dir=cwd)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    state = GenieState.create(config)
    read_only = config.read_only and not writeable

    try:
        if check:
            report = check_all(cwd, state, formatter_config=formatter_config)
        else:
            if dry_run and not as_json and not quiet:
                click.secho("Dry run mode - no files will be modified", fg="yellow")
            report = generate_all(
                cwd,
                state,
                read_only=read_only,
                dry_run=dry_run,
                formatter_config=formatter_config,
            )
    except DuplicateTargetError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _print_report(report, verbose=verbose, quiet=quiet)

    if watch and not (dry_run or check):
        _watch(cwd, state, read_only=read_only, formatter_config=formatter_config, quiet=quiet)
        return

    if not report.all_ok:
        sys.exit(1)


def _watch(
    cwd: Path,
    state: GenieState,
    *,
    read_only: bool,
    formatter_config: str | None,
    quiet: bool,
) -> None:
    from genie.core.engine.orchestrator import discover
    from genie.core.services.watcher import watch

    def regenerate(changed: list[Path]) -> None:
        report = generate_all(
            cwd,
            state,
            read_only=read_only,
            formatter_config=formatter_config,
            templates=changed,
        )
        _print_report(report, verbose=False, quiet=quiet)

    click.echo()
    click.secho("👀 Watching for changes... (Ctrl-C to stop)", fg="cyan")
    try:
        watch(lambda: discover(cwd, state)[0], regenerate)
    except KeyboardInterrupt:
        click.echo()
        click.secho("Stopped watching.", fg="cyan")


if __name__ == "__main__":
    cli()
