"""
CLI commands for retained backups.

Every install leaves its snapshots in ``~/deskboot-backup-*``; these
commands list them and replay a manifest by hand.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click


def _resolve_options(ctx: click.Context):
    from deskboot.core.config.loader import load_config, resolve_options
    from deskboot.core.errors import ConfigError
    from deskboot.main import ConfigProblem

    try:
        return resolve_options(load_config(ctx.obj.get("config_path")))
    except ConfigError as e:
        raise ConfigProblem(str(e)) from e


@click.group()
def backups() -> None:
    """Backups — list and restore per-run snapshots."""


@backups.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_backups_cmd(ctx: click.Context, as_json: bool) -> None:
    """List retained backup directories, newest first."""
    from deskboot.core.execution.backup import list_backup_dirs, load_manifest

    options = _resolve_options(ctx)
    entries = []
    for path in list_backup_dirs(options.backup_root):
        try:
            count: int | None = len(load_manifest(path).records)
        except (FileNotFoundError, ValueError):
            count = None
        entries.append({"path": str(path), "records": count})

    if as_json:
        click.echo(json.dumps({"backups": entries}, indent=2))
        return

    if not entries:
        click.secho(f"No backups found in {options.backup_root}", fg="yellow")
        return

    click.secho(f"📦 Backups in {options.backup_root} ({len(entries)}):", fg="cyan", bold=True)
    for entry in entries:
        records = "no manifest" if entry["records"] is None else f"{entry['records']} record(s)"
        click.echo(f"   {Path(entry['path']).name}  ({records})")
    click.echo()


@backups.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--yes", "-y", "auto_yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def restore(ctx: click.Context, directory: Path, auto_yes: bool) -> None:
    """Restore every path recorded in DIRECTORY's manifest."""
    from deskboot.core.context import ExecutionContext
    from deskboot.core.engine.orchestrator import sudo_restore
    from deskboot.core.execution.backup import BackupManager, load_manifest
    from deskboot.core.execution.command_runner import CommandRunner

    try:
        manifest = load_manifest(directory)
    except (FileNotFoundError, ValueError) as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if not manifest.records:
        click.secho("Nothing to restore.", fg="yellow")
        return

    click.secho(f"📋 {len(manifest.records)} path(s) in {directory}:", fg="cyan", bold=True)
    for record in manifest.records:
        root = " (root)" if record.privileged else ""
        click.echo(f"   • {record.source_path}{root}")

    if not auto_yes and not click.confirm("Overwrite these paths with their backups?", default=False):
        click.secho("Cancelled.", fg="yellow")
        sys.exit(1)

    options = _resolve_options(ctx)
    manager = BackupManager.from_manifest(directory, manifest)
    run_ctx = ExecutionContext(options=options, backups=manager)
    runner = CommandRunner(default_timeout=options.command_timeout)

    failures = manager.restore_all(privileged_restore=sudo_restore(runner, run_ctx))

    if failures:
        click.secho(f"❌ {len(failures)} path(s) could not be restored:", fg="red", bold=True)
        for failure in failures:
            click.echo(f"   • {failure}")
        sys.exit(1)

    click.secho(f"✅ Restored {len(manifest.records)} path(s)", fg="green", bold=True)
