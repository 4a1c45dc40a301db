# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/reconcile/applier.py
from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from ..errors import ApplianceError, ApplyError
from ..observers.dispatcher import EventBus
from ..observers.events import ItemCompleted, ItemFailed, TargetApplied, TargetChecked
from .backup import BackupArchive
from .detect import Detection, ForceOverride
from .outcome import ItemOutcome, Verdict
from .state import ItemState, StateStore

if TYPE_CHECKING:
    from ..config.models import Settings
    from ..system.host import Host

log = logging.getLogger("appliance")


class Target(ABC):
    """One independently idempotent artifact owned by an item."""

    name: str = "target"

    def paths(self) -> Sequence:
        """Files this target rewrites; each is backed up before mutation."""
        return ()

    @abstractmethod
    def detect(self) -> Detection: ...

    @abstractmethod
    def apply(self) -> str:
        """Converge the artifact; returns a short description of the change."""


class Item(ABC):
    """
    An independently configured concern (network, ssh, boot ...).

    Subclasses declare their dependencies, their ledger keys and build the
    list of targets from Settings.
    """

    name: str = ""
    depends_on: Tuple[str, ...] = ()
    value_key: str = ""
    stamp_key: str = ""
    # False when a change only needs the X session restarted
    requires_reboot: bool = True

    def preflight(self, settings: "Settings", host: "Host") -> None:
        """Raise PreconditionError before any item mutates anything."""

    @abstractmethod
    def targets(self, settings: "Settings", host: "Host", state: ItemState) -> List[Target]: ...

    @abstractmethod
    def state_value(self, settings: "Settings", host: "Host") -> str: ...


class ItemApplier:
    """
    Checking -> Unchanged | Updating -> Updated, or WouldUpdate under dry-run.
    """

    def __init__(
        self,
        host: "Host",
        store: StateStore,
        archive: BackupArchive,
        bus: Optional[EventBus] = None,
    ):
        self.host = host
        self.ctx = host.ctx
        self.store = store
        self.archive = archive
        self.bus = bus or EventBus()
        self.detector = ForceOverride(self.ctx.force)

    def _ctx(self, item: Item) -> dict:
        return self.bus.ctx(item.name)

    def _check(self, item: Item, targets: List[Target]) -> List[Tuple[Target, Detection]]:
        pending = []
        for t in targets:
            try:
                det = self.detector.check(t)
            except ApplianceError:
                raise
            except OSError as e:
                raise ApplyError(item.name, f"check {t.name}", e) from e
            self.bus.emit(
                TargetChecked(
                    target=t.name,
                    needs_update=det.needs_update,
                    reason=det.reason,
                    forced=det.forced,
                    **self._ctx(item),
                )
            )
            if det.needs_update:
                pending.append((t, det))
        return pending

    def run(self, item: Item, settings: "Settings") -> ItemOutcome:
        started = time.monotonic()
        try:
            outcome = self._run(item, settings)
        except ApplyError as e:
            self.bus.emit(ItemFailed(operation=e.operation, error=str(e.cause or e), **self._ctx(item)))
            raise
        except ApplianceError as e:
            self.bus.emit(ItemFailed(operation="reconcile", error=str(e), **self._ctx(item)))
            raise ApplyError(item.name, "reconcile", e) from e

        outcome.duration_ms = int((time.monotonic() - started) * 1000)
        self.bus.emit(
            ItemCompleted(
                verdict=outcome.verdict.value,
                changes=list(outcome.changes),
                duration_ms=outcome.duration_ms,
                **self._ctx(item),
            )
        )
        return outcome

    def _run(self, item: Item, settings: "Settings") -> ItemOutcome:
        state = self.store.for_item(item.value_key, item.stamp_key)
        targets = item.targets(settings, self.host, state)
        pending = self._check(item, targets)
        material = any(det.material for _, det in pending)

        base = dict(name=item.name, requires_reboot=item.requires_reboot)
        if not pending:
            return ItemOutcome(verdict=Verdict.UNCHANGED, **base)

        if self.ctx.dry_run:
            for t, _ in pending:
                for p in t.paths():
                    self.archive.preserve(p)
            if not material:
                return ItemOutcome(verdict=Verdict.UNCHANGED, **base)
            return ItemOutcome(
                verdict=Verdict.WOULD_UPDATE,
                changes=[t.name for t, det in pending if det.material],
                material=True,
                **base,
            )

        changes = []
        for t, det in pending:
            for p in t.paths():
                self.archive.preserve(p)
            try:
                detail = t.apply()
            except Exception as e:
                raise ApplyError(item.name, f"apply {t.name}", e) from e
            changes.append(t.name)
            self.bus.emit(TargetApplied(target=t.name, detail=detail, **self._ctx(item)))

        state.record(item.state_value(settings, self.host))
        return ItemOutcome(verdict=Verdict.UPDATED, changes=changes, material=material, **base)
