# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/reconcile/state.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import ResourceError
from ..utils.execution import RunContext
from .files import write_atomic

log = logging.getLogger("appliance")

STATE_FILE = "/var/lib/airplayer-appliance/state"
LAST_RUN = "last_run"


class StateStore:
    """
    Flat ``key=value`` ledger of last-applied values.

    ``set`` rewrites the key's line in place (appending it when absent), so a
    converged run leaves the file byte-identical. Under dry-run nothing is
    ever written.
    """

    def __init__(self, ctx: RunContext, path: Optional[Path] = None):
        self.ctx = ctx
        self.path = path or ctx.path(STATE_FILE)

    def init(self) -> None:
        if self.ctx.dry_run:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.touch(exist_ok=True)
        except OSError as e:
            raise ResourceError(f"cannot initialise state ledger {self.path}: {e}") from e

    def _lines(self) -> List[str]:
        if not self.path.exists():
            return []
        try:
            return self.path.read_text().splitlines()
        except OSError as e:
            raise ResourceError(f"cannot read state ledger {self.path}: {e}") from e

    def all(self) -> Dict[str, str]:
        out: Dict[str, str] = {}
        for line in self._lines():
            key, sep, value = line.partition("=")
            if sep and key:
                out[key] = value
        return out

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.all().get(key, default)

    def set(self, key: str, value: str) -> None:
        if self.ctx.dry_run:
            return
        entry = f"{key}={value}"
        kept: List[str] = []
        placed = False
        for ln in self._lines():
            if ln.startswith(f"{key}="):
                if not placed:
                    kept.append(entry)
                    placed = True
                continue
            kept.append(ln)
        if not placed:
            kept.append(entry)
        try:
            write_atomic(self.path, "\n".join(kept) + "\n", mode=0o644)
        except OSError as e:
            raise ResourceError(f"cannot write state ledger {self.path}: {e}") from e
        log.debug("state %s=%s", key, value)

    def for_item(self, value_key: str, stamp_key: str) -> "ItemState":
        return ItemState(self, value_key, stamp_key)

    def touch_last_run(self) -> None:
        self.set(LAST_RUN, self.ctx.run_stamp)


@dataclass(frozen=True)
class ItemState:
    """Typed view of one item's ledger entries."""

    store: StateStore
    value_key: str
    stamp_key: str

    @property
    def value(self) -> Optional[str]:
        return self.store.get(self.value_key)

    @property
    def configured_at(self) -> Optional[str]:
        return self.store.get(self.stamp_key)

    def record(self, value: str) -> None:
        self.store.set(self.value_key, value)
        self.store.set(self.stamp_key, self.store.ctx.day_stamp)
