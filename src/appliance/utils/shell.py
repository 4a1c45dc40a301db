# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/utils/shell.py

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Sequence

from ..errors import CommandError

log = logging.getLogger("appliance")


class FailurePolicy(Enum):
    FATAL = "fatal"
    # equivalent to success for idempotency (unit absent, file already gone)
    IGNORABLE = "ignorable"


@dataclass(frozen=True)
class CommandResult:
    argv: tuple
    returncode: int
    stdout: str = ""
    stderr: str = ""
    ignored: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """
    Thin wrapper around subprocess.run for the external collaborators
    (apt, systemctl, ufw, sshd, modprobe ...).
    Testable by mocking subprocess.run.
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None, timeout: int = 1800):
        self.env = dict(env or {})
        self.timeout = timeout

    def _environ(self) -> Optional[dict]:
        if not self.env:
            return None
        merged = os.environ.copy()
        merged.update(self.env)
        return merged

    def run(
        self,
        argv: Sequence[str],
        *,
        policy: FailurePolicy = FailurePolicy.FATAL,
        allow_rc: Optional[set[int]] = None,
        input: Optional[str] = None,
    ) -> CommandResult:
        allow_rc = allow_rc or {0}
        argv = [str(a) for a in argv]
        log.debug("$ %s", " ".join(argv))

        try:
            cp = subprocess.run(
                argv,
                check=False,
                text=True,
                capture_output=True,
                input=input,
                env=self._environ(),
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            if policy is FailurePolicy.IGNORABLE:
                log.warning("ignored: %s not available (%s)", argv[0], e)
                return CommandResult(tuple(argv), 127, "", str(e), ignored=True)
            raise CommandError(argv, 127, str(e)) from e

        result = CommandResult(tuple(argv), cp.returncode, cp.stdout or "", cp.stderr or "")
        if cp.returncode in allow_rc:
            return result

        if policy is FailurePolicy.IGNORABLE:
            log.warning("ignored failure (rc=%s): %s", cp.returncode, " ".join(argv))
            return CommandResult(result.argv, result.returncode, result.stdout, result.stderr, ignored=True)

        raise CommandError(argv, cp.returncode, cp.stderr or "")

    def probe(self, argv: Sequence[str]) -> CommandResult:
        """Read-only query whose non-zero exit is an answer, not an error."""
        argv = [str(a) for a in argv]
        log.debug("? %s", " ".join(argv))
        try:
            cp = subprocess.run(argv, check=False, text=True, capture_output=True, env=self._environ())
        except FileNotFoundError as e:
            return CommandResult(tuple(argv), 127, "", str(e))
        return CommandResult(tuple(argv), cp.returncode, cp.stdout or "", cp.stderr or "")
