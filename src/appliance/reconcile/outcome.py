# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class Verdict(str, Enum):
    UNCHANGED = "unchanged"
    UPDATED = "updated"
    WOULD_UPDATE = "would_update"


class TerminalAction(str, Enum):
    REBOOT = "REBOOT"
    RESTART_SESSION = "RESTART_SESSION"
    NONE = "NONE"


@dataclass
class ItemOutcome:
    name: str
    verdict: Verdict
    changes: List[str] = field(default_factory=list)
    # contributes to the run's aggregate "changes made" flag
    material: bool = False
    requires_reboot: bool = True
    duration_ms: int = 0


@dataclass
class RunReport:
    dry_run: bool = False
    outcomes: List[ItemOutcome] = field(default_factory=list)
    action: TerminalAction = TerminalAction.NONE

    def add(self, outcome: ItemOutcome) -> None:
        self.outcomes.append(outcome)

    def names(self, verdict: Verdict) -> List[str]:
        return [o.name for o in self.outcomes if o.verdict is verdict]

    @property
    def changed(self) -> bool:
        return any(o.material for o in self.outcomes if o.verdict is Verdict.UPDATED)

    def verdict_of(self, name: str) -> Verdict:
        for o in self.outcomes:
            if o.name == name:
                return o.verdict
        raise KeyError(name)

    def summary(self) -> str:
        updated = len(self.names(Verdict.UPDATED))
        unchanged = len(self.names(Verdict.UNCHANGED))
        would = len(self.names(Verdict.WOULD_UPDATE))
        return f"UPDATED={updated} UNCHANGED={unchanged} WOULD_UPDATE={would} CHANGED={self.changed}"
