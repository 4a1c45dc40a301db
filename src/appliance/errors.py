# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/errors.py
from __future__ import annotations

from typing import Optional, Sequence


class ApplianceError(RuntimeError):
    """Base class for every fatal reconciliation failure."""

    exit_code: int = 1


class ConfigError(ApplianceError):
    """Desired-state input is missing or invalid."""

    exit_code = 2


class PreconditionError(ApplianceError):
    """A required external input (e.g. the payload archive) is absent."""

    exit_code = 3


class ValidationError(ApplianceError):
    """A rewritten critical config failed its syntax self-check."""

    exit_code = 4


class ResourceError(ApplianceError):
    """The backup archive or state ledger cannot be written."""

    exit_code = 5


class CommandError(ApplianceError):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        detail = f"\n{stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(f"command failed (rc={returncode}): {' '.join(self.argv)}{detail}")


class ApplyError(ApplianceError):
    """Wraps any failure raised while an item was being reconciled."""

    def __init__(self, item: str, operation: str, cause: Optional[BaseException] = None):
        self.item = item
        self.operation = operation
        self.cause = cause
        msg = f"[{item}] {operation} failed"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)
        if isinstance(cause, ApplianceError):
            self.exit_code = cause.exit_code
