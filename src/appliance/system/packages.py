# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/system/packages.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Set

from ..errors import CommandError
from ..utils.execution import RunContext
from ..utils.retry import retry
from ..utils.shell import CommandResult, CommandRunner, FailurePolicy

log = logging.getLogger("appliance")

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def _log_retry(attempt: int, exc: Exception) -> None:
    log.warning("apt-get update attempt %d failed: %s", attempt, exc)


class PackageManager:
    """apt/dpkg capability: ensure set installed, upgrade all, autoremove."""

    def __init__(self, ctx: RunContext, runner: CommandRunner):
        self.ctx = ctx
        self.runner = runner

    def _admindir(self) -> List[str]:
        if self.ctx.root != Path("/"):
            return [f"--admindir={self.ctx.path('/var/lib/dpkg')}"]
        return []

    def installed(self, names: Iterable[str]) -> Set[str]:
        names = list(names)
        if not names:
            return set()
        # unknown packages make dpkg-query exit 1 but still list the known ones
        res = self.runner.probe(
            ["dpkg-query", *self._admindir(), "-W", "-f=${Package} ${db:Status-Status}\\n", *names]
        )
        out: Set[str] = set()
        for line in res.stdout.splitlines():
            parts = line.split()
            if len(parts) == 2 and parts[1] == "installed":
                out.add(parts[0].split(":")[0])
        return out

    def _apt(self, *args: str, policy: FailurePolicy = FailurePolicy.FATAL) -> CommandResult:
        return self.runner.run(
            ["env", *(f"{k}={v}" for k, v in APT_ENV.items()), "apt-get", "-qq", "-y", *args],
            policy=policy,
        )

    @retry(retries=3, delay=5, retry_on=(CommandError,), on_retry=_log_retry)
    def refresh(self) -> CommandResult:
        return self._apt("update")

    def install(self, names: Iterable[str]) -> CommandResult:
        return self._apt("install", *sorted(set(names)))

    def upgrade(self) -> CommandResult:
        return self._apt("upgrade")

    def full_upgrade(self, *, policy: FailurePolicy = FailurePolicy.FATAL) -> CommandResult:
        return self._apt("full-upgrade", policy=policy)

    def autoremove(self) -> CommandResult:
        return self._apt("autoremove", "--purge")

    def clean(self) -> CommandResult:
        return self._apt("autoclean", policy=FailurePolicy.IGNORABLE)

    def upgradable(self) -> List[str]:
        """``apt list --upgradable`` lines, one per package."""
        res = self.runner.probe(["apt", "list", "--upgradable"])
        return [ln for ln in res.stdout.splitlines() if "/" in ln and not ln.startswith("Listing")]
