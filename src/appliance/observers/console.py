# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/observers/console.py
from __future__ import annotations

import typer

from .events import (
    BackupRecorded,
    BaseEvent,
    ItemCompleted,
    ItemFailed,
    PlanComputed,
    RunStarted,
    RunSummary,
    TargetApplied,
    TargetChecked,
    TerminalActionDecided,
)


class ConsoleObserver:
    """Operator-facing progress lines."""

    def __init__(self, *, verbose: bool = False, echo=typer.echo):
        self.verbose = verbose
        self.echo = echo
        self._total = 0
        self._index = 0

    def notify(self, event: BaseEvent) -> None:
        if isinstance(event, RunStarted):
            if event.dry_run:
                self.echo(typer.style("*** DRY RUN MODE - No changes will be made ***", fg=typer.colors.YELLOW))
            self.echo(f"Configuration: {event.config_path}")
        elif isinstance(event, PlanComputed):
            self._total = len(event.order)
        elif isinstance(event, TargetChecked):
            if event.needs_update:
                tag = " (forced)" if event.forced else ""
                self.echo(typer.style(f"  → {event.target}: {event.reason}{tag}", fg=typer.colors.YELLOW))
            elif self.verbose:
                self.echo(f"  · {event.target}: {event.reason}")
        elif isinstance(event, BackupRecorded):
            verb = "Backed up" if event.materialized else "Would backup"
            self.echo(typer.style(f"    {verb}: {event.source} → {event.destination}", fg=typer.colors.CYAN))
        elif isinstance(event, TargetApplied):
            if self.verbose:
                self.echo(typer.style(f"    {event.target}: {event.detail}", fg=typer.colors.CYAN))
        elif isinstance(event, ItemCompleted):
            self._index += 1
            self._item_line(event)
        elif isinstance(event, ItemFailed):
            self.echo(
                typer.style(f"  ✗ {event.context}: {event.operation} failed: {event.error}", fg=typer.colors.RED),
                err=True,
            )
        elif isinstance(event, RunSummary):
            self._summary(event)
        elif isinstance(event, TerminalActionDecided):
            self.echo(f"Next step: {event.action.lower().replace('_', ' ')} ({event.reason})")

    def _item_line(self, event: ItemCompleted) -> None:
        prefix = f"[{self._index}/{self._total}] " if self._total else ""
        if event.verdict == "unchanged":
            self.echo(typer.style(f"{prefix}✓ {event.context} already configured", fg=typer.colors.GREEN))
        elif event.verdict == "updated":
            detail = f" ({', '.join(event.changes)})" if event.changes else ""
            self.echo(typer.style(f"{prefix}✓ {event.context} updated{detail}", fg=typer.colors.GREEN))
        else:
            detail = f" ({', '.join(event.changes)})" if event.changes else ""
            self.echo(typer.style(f"{prefix}→ {event.context} would update{detail}", fg=typer.colors.CYAN))

    def _summary(self, event: RunSummary) -> None:
        self.echo("")
        if event.dry_run:
            self.echo(typer.style("*** DRY RUN MODE - No changes were made ***", fg=typer.colors.YELLOW))
            if event.would_update:
                self.echo(f"Would update: {', '.join(event.would_update)}")
        elif event.changed:
            self.echo(f"Changes were made: {', '.join(event.updated)}")
        else:
            self.echo("No changes were needed - system already configured correctly.")
