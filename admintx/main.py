"""
admintx — CLI entrypoint.

Usage:
    python -m admintx.main --help
    python -m admintx.main run provision.yml
    python -m admintx.main check provision.yml
    python -m admintx.main errors report
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from admintx import __version__
from admintx.core.config.loader import load_settings
from admintx.core.errors import ConfigError
from admintx.core.models.settings import Settings
from admintx.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="admintx")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to admintx.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """admintx — transactional administrative tasks with rollback."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("ADMINTX_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("ADMINTX_LOG_FILE"),
        log_file_level=os.environ.get("ADMINTX_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


def _settings(ctx: click.Context) -> Settings:
    """Load settings or exit with a config error."""
    try:
        return load_settings(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(2)


# ── run ─────────────────────────────────────────────────────────


@cli.command()
@click.argument("task_file", type=click.Path(path_type=Path))
@click.option("--dry-run", is_flag=True, help="Log commands instead of running them.")
@click.option("--no-recovery", is_flag=True, help="Disable automatic error recovery.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run(
    ctx: click.Context,
    task_file: Path,
    dry_run: bool,
    no_recovery: bool,
    as_json: bool,
) -> None:
    """Run a task file with rollback and recovery."""
    from admintx.core.use_cases.run_task import run_task

    settings = _settings(ctx)
    overrides: dict[str, bool] = {}
    if dry_run:
        overrides["dry_run"] = True
    if no_recovery:
        overrides["recovery_enabled"] = False
    if overrides:
        settings = settings.model_copy(update=overrides)

    result = run_task(task_file, settings, handle_signals=True)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(result.exit_code)

    prefix = "[DRY-RUN] " if result.dry_run else ""
    if result.exit_code == 0:
        click.secho(f"✅ {prefix}Task '{result.task_name}' completed", fg="green", bold=True)
    else:
        click.secho(
            f"❌ {prefix}Task '{result.task_name}' failed (exit code {result.exit_code})",
            fg="red",
            bold=True,
        )

    if result.dry_run:
        click.echo(f"   Would execute {len(result.planned)} command(s):")
        for planned in result.planned:
            click.echo(
                f"     {planned['number']}. {planned['description']}: {planned['command']}"
            )

    if not ctx.obj.get("quiet", False):
        click.echo(f"   Errors handled: {result.error_count}")
        for verdict in result.verdicts:
            click.echo(
                f"     • #{verdict['sequence_number']} "
                f"{verdict['state']}: {verdict['operation_text']}"
            )
    if result.rollback_failures:
        click.secho(
            f"⚠️  {result.rollback_failures} rollback action(s) failed; "
            "manual cleanup may be needed",
            fg="yellow",
        )

    sys.exit(result.exit_code)


# ── check ───────────────────────────────────────────────────────


@cli.command()
@click.argument("task_file", type=click.Path(path_type=Path))
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def check(task_file: Path, as_json: bool) -> None:
    """Validate a task file without running it."""
    from admintx.core.use_cases.check_task import check_task

    result = check_task(task_file)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.task is not None  # guaranteed when valid
        click.secho("✅ Task file is valid", fg="green", bold=True)
        click.echo(f"   Task: {result.task.name}")
        click.echo(f"   Steps: {len(result.task.steps)}")
        click.echo(f"   Commands: {result.task.command_count}")
    else:
        click.secho("❌ Task file errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        sys.exit(1)


# ── errors ──────────────────────────────────────────────────────


@cli.group()
def errors() -> None:
    """Inspect and maintain the error log."""


def _error_log(ctx: click.Context):
    from admintx.core.persistence.error_log import ErrorLogWriter

    return ErrorLogWriter(_settings(ctx).resolve_error_log())


@errors.command("report")
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Report file (default: <data dir>/error_report_<timestamp>.txt).",
)
@click.pass_context
def errors_report(ctx: click.Context, output: Path | None) -> None:
    """Write a human-readable error report."""
    from datetime import datetime

    from admintx.core.persistence.error_log import generate_error_report

    settings = _settings(ctx)
    log = _error_log(ctx)
    if output is None:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output = settings.resolve_data_dir() / f"error_report_{stamp}.txt"

    try:
        path = generate_error_report(log, output)
    except OSError as e:
        click.secho(f"❌ Cannot write report: {e}", fg="red")
        sys.exit(1)
    click.echo(f"Error report generated: {path}")


@errors.command("tail")
@click.option("-n", "lines", type=int, default=50, show_default=True, help="Lines to show.")
@click.pass_context
def errors_tail(ctx: click.Context, lines: int) -> None:
    """Show the last lines of the error log."""
    log = _error_log(ctx)
    tail = log.tail_lines(lines)
    if not tail:
        click.echo(f"No errors logged ({log.path})")
        return
    for line in tail:
        click.echo(line)


@errors.command("prune")
@click.option("--days", type=int, default=None, help="Retention in days (default: from settings).")
@click.pass_context
def errors_prune(ctx: click.Context, days: int | None) -> None:
    """Delete error logs older than the retention period."""
    from admintx.core.persistence.error_log import prune_error_logs

    settings = _settings(ctx)
    retention = days if days is not None else settings.error_log_retention_days
    try:
        removed = prune_error_logs(settings.resolve_error_log().parent, retention)
    except ValueError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(2)

    click.echo(f"Removed {len(removed)} log file(s)")
    for path in removed:
        click.echo(f"   • {path}")


if __name__ == "__main__":
    cli()
