# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path


@dataclass(frozen=True)
class RunContext:
    """
    Run-level control flags threaded through every applier.

    root prefixes every managed absolute path so a mounted image or a test
    sandbox can be converged instead of the live system.
    """

    dry_run: bool = False
    force: bool = False
    root: Path = Path("/")
    started: datetime = field(default_factory=datetime.now)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("appliance"))

    @property
    def run_stamp(self) -> str:
        return self.started.strftime("%Y%m%d_%H%M%S")

    @property
    def day_stamp(self) -> str:
        return self.started.strftime("%Y%m%d")

    def path(self, p: str | Path) -> Path:
        p = Path(p)
        if p.is_absolute():
            return self.root / p.relative_to("/")
        return self.root / p
