# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/reconcile/orchestrator.py
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..config.models import Settings
from ..errors import ResourceError
from ..observers.dispatcher import EventBus
from ..observers.events import RunStarted, RunSummary, TerminalActionDecided
from ..system.host import Host
from .applier import Item, ItemApplier
from .backup import BackupArchive
from .files import write_atomic
from .outcome import RunReport, TerminalAction, Verdict
from .planner import plan
from .render import render
from .state import StateStore

log = logging.getLogger("appliance")

MARKER = ".airplayer-installed"


def decide_action(report: RunReport) -> tuple[TerminalAction, str]:
    if report.dry_run:
        return TerminalAction.NONE, "dry run"
    changed = [o for o in report.outcomes if o.verdict is Verdict.UPDATED and o.material]
    if not changed:
        return TerminalAction.NONE, "already converged"
    needs_reboot = [o.name for o in changed if o.requires_reboot]
    if needs_reboot:
        return TerminalAction.REBOOT, f"changed: {', '.join(needs_reboot)}"
    return TerminalAction.RESTART_SESSION, f"session-level changes: {', '.join(o.name for o in changed)}"


class Orchestrator:
    """
    Runs every item in dependency order and aggregates the verdicts.

    It never touches artifacts itself: preflight, the appliers, the state
    ledger and the backup archive do.
    """

    def __init__(
        self,
        settings: Settings,
        host: Host,
        items: Sequence[Item],
        *,
        bus: Optional[EventBus] = None,
        config_path: str = "",
    ):
        self.settings = settings
        self.host = host
        self.ctx = host.ctx
        self.items = list(items)
        self.bus = bus or EventBus()
        self.config_path = config_path
        self.store = StateStore(self.ctx)
        self.archive = BackupArchive(self.ctx, self.bus)

    def _preflight(self, order: List[Item]) -> None:
        for item in order:
            item.preflight(self.settings, self.host)

    def run(self) -> RunReport:
        self.bus.emit(
            RunStarted(
                config_path=self.config_path,
                root=str(self.ctx.root),
                dry_run=self.ctx.dry_run,
                force=self.ctx.force,
                **self.bus.ctx(None),
            )
        )
        order = plan(self.items, self.bus)

        # nothing is created or written before every precondition holds
        self._preflight(order)
        self.store.init()
        self.archive.ensure()

        report = RunReport(dry_run=self.ctx.dry_run)
        applier = ItemApplier(self.host, self.store, self.archive, self.bus)
        for item in order:
            report.add(applier.run(item, self.settings))

        if not self.ctx.dry_run:
            self.store.touch_last_run()
            if report.changed:
                self._write_marker()

        report.action, reason = decide_action(report)
        self.bus.emit(
            RunSummary(
                changed=report.changed,
                dry_run=report.dry_run,
                updated=report.names(Verdict.UPDATED),
                unchanged=report.names(Verdict.UNCHANGED),
                would_update=report.names(Verdict.WOULD_UPDATE),
                **self.bus.ctx(None),
            )
        )
        self.bus.emit(TerminalActionDecided(action=report.action.value, reason=reason, **self.bus.ctx(None)))
        log.info("run finished: %s", report.summary())
        return report

    def _write_marker(self) -> None:
        s = self.settings
        swap = "Disabled" if not self.host.swap.active_devices() else "Active"
        content = render(
            "marker.j2",
            updated=self.ctx.started.strftime("%Y-%m-%d %H:%M:%S"),
            displays=s.display.count,
            network=s.network.cidr,
            swap=swap,
        )
        path = self.host.path(s.system_user_home / MARKER)
        try:
            write_atomic(path, content, mode=0o644, owner=s.system_user)
        except OSError as e:
            raise ResourceError(f"cannot write install marker {path}: {e}") from e
