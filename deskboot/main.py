"""
deskboot — CLI entrypoint.

Usage:
    deskboot --help
    deskboot install --dry-run
    deskboot plan --json
    deskboot backups list
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from deskboot import __version__
from deskboot.core.observability.logging_config import setup_logging

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


class ConfigProblem(click.ClickException):
    """Configuration or plan error reported to the user (exit 2)."""

    exit_code = 2


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(version=__version__, prog_name="deskboot")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to deskboot.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """deskboot — bootstrap a Wayfire desktop on Arch Linux."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (console only; install adds the run log) ──
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("DESKBOOT_LOG_LEVEL")
    ctx.obj["log_level"] = level

    setup_logging(level=level or "WARNING")


# ── Shared plan flags ───────────────────────────────────────────


def plan_flags(func):
    """Flags that select what the plan contains (install and plan)."""
    decorators = [
        click.option("--theme", "-t", default=None, help="GTK theme to install (see 'deskboot themes')."),
        click.option("--partial", is_flag=True, help="Install only the core desktop."),
        click.option("--skip-wallpapers", is_flag=True, help="Do not download wallpapers."),
        click.option("--fallback-desktop", is_flag=True,
                     help="Use the packaged Wayfire instead of building from source."),
        click.option("--dry-run", is_flag=True, help="Log every command instead of running it."),
        click.option("--yes", "-y", "auto_yes", is_flag=True, help="Answer yes to every confirmation."),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def _build_plan(ctx: click.Context, **flags):
    """Resolve config + flags into a Plan, mapping errors to exit 2."""
    from deskboot.core.config.loader import load_config, resolve_options
    from deskboot.core.errors import ConfigError, PlanError
    from deskboot.services.desktop.plan_builder import build_plan

    overrides = {
        "theme": flags.get("theme"),
        "full_install": False if flags.get("partial") else None,
        "skip_wallpapers": True if flags.get("skip_wallpapers") else None,
        "fallback_desktop": True if flags.get("fallback_desktop") else None,
        "dry_run": flags.get("dry_run", False),
        "auto_yes": flags.get("auto_yes", False),
    }
    try:
        config = load_config(ctx.obj.get("config_path"))
        options = resolve_options(config, **overrides)
        return build_plan(options)
    except (ConfigError, PlanError) as e:
        raise ConfigProblem(str(e)) from e


# ── Commands ────────────────────────────────────────────────────


@cli.command()
@plan_flags
@click.option("--strict", is_flag=True, help="Exit with status 2 when the run finished with warnings.")
@click.pass_context
def install(ctx: click.Context, strict: bool, **flags) -> None:
    """Provision the desktop, step by step."""
    from deskboot.core.engine.orchestrator import Orchestrator
    from deskboot.core.models.run import RunStatus
    from deskboot.core.observability.logging_config import run_log_path

    plan = _build_plan(ctx, **flags)

    log_path = run_log_path()
    setup_logging(
        level=ctx.obj.get("log_level") or "INFO",
        log_file=log_path,
    )

    report = Orchestrator(plan, log_path=log_path).run()
    _print_summary(report, quiet=ctx.obj.get("quiet", False))

    if report.exit_code:
        sys.exit(report.exit_code)
    if strict and report.status == RunStatus.COMPLETED_WITH_WARNINGS:
        sys.exit(2)


def _print_summary(report, quiet: bool = False) -> None:
    from deskboot.core.models.run import RunStatus, StepState

    marks = {
        StepState.SUCCEEDED: ("✓", "green"),
        StepState.SKIPPED: ("–", "white"),
        StepState.FAILED: ("✗", "red"),
        StepState.PENDING: ("·", "white"),
        StepState.RUNNING: ("…", "yellow"),
    }

    if not quiet:
        title = "\n📋 Dry-run summary" if report.dry_run else "\n📋 Run summary"
        click.secho(title, fg="cyan", bold=True)
        for outcome in report.outcomes:
            mark, color = marks[outcome.state]
            click.secho(f"   {mark} ", fg=color, nl=False)
            click.echo(f"{outcome.name:<22} {outcome.state.value}")

    if report.warnings:
        click.echo()
        click.secho(f"⚠️  Warnings ({len(report.warnings)}):", fg="yellow")
        for warning in report.warnings:
            click.echo(f"   • {warning}")

    click.echo()
    if report.status == RunStatus.ABORTED:
        click.secho(f"❌ Aborted at step '{report.aborted_at}': {report.error}", fg="red", bold=True)
        for problem in report.cleanup_errors:
            click.echo(f"   • cleanup: {problem}")
    elif report.status == RunStatus.COMPLETED_WITH_WARNINGS:
        click.secho("⚠️  Completed with warnings", fg="yellow", bold=True)
    else:
        click.secho("✅ Completed", fg="green", bold=True)

    if report.backup_dir:
        click.echo(f"   Backups: {report.backup_dir}")
    if report.log_path:
        click.echo(f"   Log: {report.log_path}")
    if report.status != RunStatus.ABORTED and not report.dry_run:
        click.echo("   Reboot your system to apply changes.")


@cli.command("plan")
@plan_flags
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show_plan(ctx: click.Context, as_json: bool, **flags) -> None:
    """Show the steps an install would run (nothing is executed)."""
    plan = _build_plan(ctx, **flags)

    if as_json:
        click.echo(json.dumps(plan.to_dict(), indent=2))
        return

    options = plan.options
    mode = "full" if options.full_install else "partial"
    click.secho(f"\n📋 Plan: {len(plan)} steps ({mode} install, theme '{options.theme}')",
                fg="cyan", bold=True)
    for i, step in enumerate(plan, start=1):
        tags = [step.criticality.value]
        if step.retryable:
            tags.append("retry")
        if step.confirmable:
            tags.append("confirm")
        click.echo(f"   {i:>2}. {step.name:<22} {step.description}  [{', '.join(tags)}]")
    click.echo()


@cli.command()
def themes() -> None:
    """List the available GTK themes."""
    from deskboot.core.models.options import DEFAULT_THEME
    from deskboot.services.desktop.plan_builder import available_themes

    click.secho("\n🎨 Themes:\n", fg="cyan", bold=True)
    for key, label in available_themes().items():
        default = " (default)" if key == DEFAULT_THEME else ""
        click.echo(f"   • {key:<12} {label}{default}")
    click.echo()


# ── Sub-groups ──────────────────────────────────────────────────

from deskboot.ui.cli.backup import backups  # noqa: E402

cli.add_command(backups)


if __name__ == "__main__":
    cli()
