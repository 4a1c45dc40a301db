# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/items/ssh.py
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from ..errors import ValidationError
from ..reconcile.applier import Item
from ..reconcile.render import render
from ..utils.shell import CommandRunner
from .common import FileTarget

log = logging.getLogger("appliance")

SSHD_CONFIG = "/etc/ssh/sshd_config"


class SshPolicyTarget(FileTarget):
    """
    sshd_config, syntax-checked with ``sshd -t`` before it replaces the
    live file. The daemon is never restarted from here: the policy takes
    effect on the next sshd restart or reboot so a session running over
    ssh is not cut off.
    """

    def __init__(self, path: Path, desired: str, runner: CommandRunner):
        super().__init__("sshd policy", path, desired, mode=0o644)
        self.runner = runner

    def apply(self) -> str:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".sshd_config.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w") as fh:
                fh.write(self.desired)
            os.chmod(tmp, 0o644)

            res = self.runner.probe(["sshd", "-t", "-f", tmp])
            if res.returncode == 127:
                log.warning("sshd not available; skipping syntax check of %s", self.path)
            elif res.returncode != 0:
                raise ValidationError(f"sshd -t rejected new policy: {res.stderr.strip() or res.stdout.strip()}")

            os.replace(tmp, self.path)
        finally:
            if os.path.exists(tmp):
                os.unlink(tmp)
        log.info("SSH policy written; it applies on next sshd restart or reboot")
        return f"wrote {self.path} (validated, not reloaded)"


class SshItem(Item):
    name = "ssh"
    depends_on = ("network",)
    value_key = "ssh_port"
    stamp_key = "ssh_configured"

    def targets(self, settings, host, state):
        return [SshPolicyTarget(host.path(SSHD_CONFIG), render("sshd_config.j2", ssh=settings.ssh), host.runner)]

    def state_value(self, settings, host) -> str:
        return str(settings.ssh.port)
