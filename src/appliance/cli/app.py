# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/cli/app.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import typer
import yaml

from appliance.cli.helper import build_bus, confirm_with_timeout, perform_terminal_action
from appliance.config.loader import find_properties, load_settings
from appliance.errors import ApplianceError, ConfigError
from appliance.items.registry import default_items
from appliance.logging.log import init_logging
from appliance.maintenance.diagnostics import write_report
from appliance.maintenance.update import run_update
from appliance.reconcile.backup import BackupArchive, list_backups
from appliance.reconcile.orchestrator import Orchestrator
from appliance.reconcile.planner import CyclicDependencyError, UnknownDependencyError
from appliance.reconcile.state import LAST_RUN, StateStore
from appliance.system.host import Host
from appliance.utils.execution import RunContext
from appliance.utils.shell import CommandRunner


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(
    help="Air Player appliance builder: converge this Raspberry Pi to setup.properties.",
    invoke_without_command=True,
    no_args_is_help=False,
)


def _fail(e: Exception, code: int) -> typer.Exit:
    typer.secho(f"ERROR: {e}", fg=typer.colors.RED, err=True)
    return typer.Exit(code=code)


def _root(ctx: typer.Context) -> Path:
    return ctx.obj["root"]


def _settings(ctx: typer.Context, required: bool = True):
    try:
        path = find_properties(ctx.obj["config"])
        return load_settings(path), path
    except ConfigError:
        if required:
            raise
        return None, None


# ------------------------------------------------------------------------------
# Reconcile (default command)
# ------------------------------------------------------------------------------

@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Properties file (default: $AIRPLAYER_PROPERTIES or ./setup.properties)"
    ),
    root: Path = typer.Option(Path("/"), "--root", help="Converge the system mounted at this path"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would change without making changes"),
    force: bool = typer.Option(False, "--force", help="Treat every item as needing an update"),
    no_reboot: bool = typer.Option(False, "--no-reboot", help="Never reboot or restart the session"),
    reboot_timeout: int = typer.Option(30, "--reboot-timeout", min=0, help="Seconds to wait at the reboot prompt"),
    debug: bool = typer.Option(False, "--debug"),
):
    ctx.obj = {"config": config, "root": root, "debug": debug}
    if ctx.invoked_subcommand is not None:
        return

    logger, run_id, log_path = init_logging(verbose=debug)

    typer.secho("Air Player Appliance Builder", bold=True)
    typer.echo(f"  Run ID   : {run_id}")
    typer.echo(f"  Logs     : {log_path}")
    typer.echo("")

    try:
        settings, cfg_path = _settings(ctx)
        run_ctx = RunContext(dry_run=dry_run, force=force, root=root, logger=logger)
        host = Host(run_ctx, CommandRunner())
        env = "dry-run" if dry_run else ("force" if force else "apply")
        bus = build_bus(logger, run_id, env=env, verbose=debug, audit_dir=log_path.parent)
        report = Orchestrator(settings, host, default_items(), bus=bus, config_path=str(cfg_path)).run()
    except ApplianceError as e:
        raise _fail(e, e.exit_code)
    except (UnknownDependencyError, CyclicDependencyError) as e:
        raise _fail(e, 1)

    logger.info(report.summary())
    if not dry_run and report.changed:
        s = settings
        typer.echo("")
        typer.echo("Configuration Summary:")
        typer.echo(f"  Network     : {s.network.cidr}")
        typer.echo(f"  Displays    : {s.display.count}")
        typer.echo(f"  Air Manager : {s.firewall.airmanager_ip}")
        typer.echo(f"  Connect via : ssh {s.ssh.allowed_user}@{s.network.address} -p {s.ssh.port}")

    try:
        perform_terminal_action(
            report.action,
            host,
            no_reboot=no_reboot,
            timeout=reboot_timeout,
            confirm=confirm_with_timeout,
        )
    except ApplianceError as e:
        raise _fail(e, e.exit_code)


# ------------------------------------------------------------------------------
# Read-only commands
# ------------------------------------------------------------------------------

@app.command()
def status(
    ctx: typer.Context,
    as_yaml: bool = typer.Option(False, "--yaml", help="Print as YAML"),
):
    """Show what the state ledger says about each item."""
    run_ctx = RunContext(dry_run=True, root=_root(ctx))
    store = StateStore(run_ctx)
    entries = store.all()

    items = {}
    for item in default_items():
        items[item.name] = {
            "value": entries.get(item.value_key),
            "configured": entries.get(item.stamp_key),
        }
    backups = sum(len(v) for v in list_backups(BackupArchive(run_ctx).directory).values())
    doc = {
        "ledger": str(store.path),
        "last_run": entries.get(LAST_RUN),
        "backups": backups,
        "items": items,
    }

    if as_yaml:
        typer.echo(yaml.safe_dump(doc, sort_keys=False).rstrip())
        return

    typer.echo(f"Ledger   : {doc['ledger']}")
    typer.echo(f"Last run : {doc['last_run'] or 'never'}")
    typer.echo(f"Backups  : {backups}")
    for name, v in items.items():
        if v["configured"]:
            typer.echo(f"  ✓ {name:<15} {v['value'] or '-'} (configured {v['configured']})")
        else:
            typer.echo(f"  · {name:<15} not configured")


@app.command()
def backups(ctx: typer.Context):
    """List backup records, grouped by file, newest first."""
    directory = BackupArchive(RunContext(dry_run=True, root=_root(ctx))).directory
    groups = list_backups(directory)
    if not groups:
        typer.echo(f"No backups in {directory}")
        return
    typer.echo(f"Backups in {directory}:")
    for base, records in groups.items():
        typer.echo(f"  {base}")
        for r in records:
            typer.echo(f"    {r.name}")


@app.command()
def diagnose(
    ctx: typer.Context,
    output_dir: Path = typer.Option(Path("."), "--output-dir", "-o"),
):
    """Write a read-only diagnostics report."""
    logger, _, _ = init_logging(verbose=ctx.obj["debug"], name="appliance")
    settings, _ = _settings(ctx, required=False)
    if settings is None:
        typer.echo("No properties file found; settings-dependent checks are skipped.")
    host = Host(RunContext(dry_run=True, root=_root(ctx), logger=logger), CommandRunner())
    path, sections = write_report(host, settings, output_dir)
    warnings = sum(1 for s in sections for c in s.checks if c.ok is False)
    typer.echo(f"Report written to {path} ({warnings} warnings)")


# ------------------------------------------------------------------------------
# Maintenance
# ------------------------------------------------------------------------------

@app.command()
def update(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Answer yes to every prompt"),
):
    """Manual package update with repository validation."""
    logger, _, log_path = init_logging(verbose=ctx.obj["debug"], name="appliance")
    typer.echo(f"Logs: {log_path}")

    def confirm(question: str) -> bool:
        return yes or typer.confirm(question, default=False)

    host = Host(RunContext(root=_root(ctx), logger=logger), CommandRunner())
    try:
        report = run_update(host, confirm=confirm, echo=typer.echo)
    except ApplianceError as e:
        raise _fail(e, e.exit_code)
    except RuntimeError as e:
        raise _fail(e, 1)

    if report.cancelled:
        typer.secho("Update cancelled by user", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)

    if report.reboot_required:
        typer.secho("⚠ REBOOT REQUIRED", fg=typer.colors.YELLOW)
        for pkg in report.reboot_packages:
            typer.echo(f"  {pkg}")
        if os.geteuid() == 0 and confirm("Reboot now?"):
            host.services.reboot()
    else:
        typer.secho("✓ No reboot required", fg=typer.colors.GREEN)
