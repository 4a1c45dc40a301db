# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/reconcile/backup.py
from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import ResourceError
from ..observers.dispatcher import EventBus
from ..observers.events import BackupRecorded
from ..utils.execution import RunContext

log = logging.getLogger("appliance")

BACKUP_DIR = "/var/backups/airplayer-appliance"


@dataclass(frozen=True)
class BackupRecord:
    source: Path
    destination: Path
    materialized: bool


class BackupArchive:
    """
    Append-only archive of files about to be overwritten.

    Records are named ``<basename>.<YYYYMMDD_HHMMSS>`` using the run's start
    time, and each path is preserved at most once per run so the record
    always holds the content from before the run touched it.
    """

    def __init__(self, ctx: RunContext, bus: Optional[EventBus] = None, directory: Optional[Path] = None):
        self.ctx = ctx
        self.bus = bus
        self.directory = directory or ctx.path(BACKUP_DIR)
        self._seen: Dict[Path, BackupRecord] = {}

    def ensure(self) -> None:
        if self.ctx.dry_run:
            return
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ResourceError(f"cannot create backup directory {self.directory}: {e}") from e

    def _destination(self, path: Path) -> Path:
        dest = self.directory / f"{path.name}.{self.ctx.run_stamp}"
        n = 1
        taken = {r.destination for r in self._seen.values()}
        while dest in taken or dest.exists() or dest.is_symlink():
            dest = self.directory / f"{path.name}.{self.ctx.run_stamp}.{n}"
            n += 1
        return dest

    def preserve(self, path: Path) -> Optional[BackupRecord]:
        if not (path.exists() or path.is_symlink()):
            return None
        if path in self._seen:
            return self._seen[path]

        dest = self._destination(path)
        if self.ctx.dry_run:
            record = BackupRecord(path, dest, materialized=False)
        else:
            self.ensure()
            try:
                if path.is_dir() and not path.is_symlink():
                    shutil.copytree(path, dest, symlinks=True)
                else:
                    shutil.copy2(path, dest, follow_symlinks=False)
            except OSError as e:
                raise ResourceError(f"cannot back up {path} to {dest}: {e}") from e
            record = BackupRecord(path, dest, materialized=True)
            log.debug("Backed up %s -> %s", path, dest)

        self._seen[path] = record
        if self.bus:
            self.bus.emit(
                BackupRecorded(
                    source=str(path),
                    destination=str(dest),
                    materialized=record.materialized,
                    **self.bus.ctx(None),
                )
            )
        return record

    @property
    def records(self) -> List[BackupRecord]:
        return list(self._seen.values())


def list_backups(directory: Path) -> Dict[str, List[Path]]:
    """Backup records grouped by original basename, newest first."""
    groups: Dict[str, List[Path]] = {}
    if not directory.is_dir():
        return groups
    for entry in directory.iterdir():
        parts = entry.name.rsplit(".", 2)
        # <basename>.<YYYYMMDD_HHMMSS>[.<n>]
        if len(parts) >= 2 and _is_stamp(parts[-1]):
            base = entry.name[: -(len(parts[-1]) + 1)]
        elif len(parts) == 3 and _is_stamp(parts[-2]) and parts[-1].isdigit():
            base = parts[0]
        else:
            continue
        groups.setdefault(base, []).append(entry)
    for base in groups:
        groups[base].sort(key=lambda p: p.name, reverse=True)
    return dict(sorted(groups.items()))


def _is_stamp(s: str) -> bool:
    return len(s) == 15 and s[8] == "_" and s[:8].isdigit() and s[9:].isdigit()
