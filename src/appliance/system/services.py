# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/system/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ..utils.execution import RunContext
from ..utils.shell import CommandResult, CommandRunner, FailurePolicy

log = logging.getLogger("appliance")

UNIT_TYPES = (
    ".service", ".socket", ".target", ".timer", ".path",
    ".mount", ".automount", ".swap", ".device", ".slice", ".scope",
)


def unit_name(unit: str) -> str:
    """Full unit name; bare names are services, as systemctl assumes elsewhere."""
    return unit if unit.endswith(UNIT_TYPES) else f"{unit}.service"


@dataclass(frozen=True)
class UnitState:
    enabled: bool
    active: bool
    masked: bool


class ServiceManager:
    """
    systemctl wrapper.

    With a non-default root, enablement changes run offline
    (``systemctl --root``) and runtime operations are skipped.
    """

    def __init__(self, ctx: RunContext, runner: CommandRunner):
        self.ctx = ctx
        self.runner = runner

    @property
    def offline(self) -> bool:
        return self.ctx.root != Path("/")

    def _argv(self, *args: str) -> List[str]:
        if self.offline:
            return ["systemctl", f"--root={self.ctx.root}", *args]
        return ["systemctl", *args]

    # ---- queries ----
    def enablement(self, unit: str) -> str:
        res = self.runner.probe(self._argv("is-enabled", unit))
        return res.stdout.strip() or ("not-found" if res.returncode else "enabled")

    def is_enabled(self, unit: str) -> bool:
        return self.enablement(unit) in ("enabled", "enabled-runtime", "alias", "static")

    def is_masked(self, unit: str) -> bool:
        return self.enablement(unit).startswith("masked")

    def is_active(self, unit: str) -> bool:
        if self.offline:
            return False
        return self.runner.probe(["systemctl", "is-active", "--quiet", unit]).returncode == 0

    def exists(self, unit: str) -> bool:
        # list-unit-files matches its argument literally, so bare names need a suffix
        res = self.runner.probe(self._argv("list-unit-files", "--no-legend", "--no-pager", unit_name(unit)))
        return res.returncode == 0 and bool(res.stdout.strip())

    def state(self, unit: str) -> UnitState:
        return UnitState(self.is_enabled(unit), self.is_active(unit), self.is_masked(unit))

    # ---- mutations ----
    def enable(self, unit: str) -> CommandResult:
        return self.runner.run(self._argv("enable", unit))

    def disable(self, unit: str, *, now: bool = True) -> CommandResult:
        args = ["disable", unit]
        if now and not self.offline:
            args.insert(1, "--now")
        return self.runner.run(self._argv(*args), policy=FailurePolicy.IGNORABLE)

    def mask(self, unit: str) -> CommandResult:
        return self.runner.run(self._argv("mask", unit), policy=FailurePolicy.IGNORABLE)

    def restart(self, unit: str, *, policy: FailurePolicy = FailurePolicy.FATAL) -> CommandResult:
        if self.offline:
            log.info("offline root: not restarting %s", unit)
            return CommandResult(("systemctl", "restart", unit), 0)
        return self.runner.run(["systemctl", "restart", unit], policy=policy)

    def stop(self, unit: str) -> CommandResult:
        if self.offline:
            return CommandResult(("systemctl", "stop", unit), 0)
        return self.runner.run(["systemctl", "stop", unit], policy=FailurePolicy.IGNORABLE)

    def reboot(self) -> CommandResult:
        return self.runner.run(["systemctl", "reboot"])
