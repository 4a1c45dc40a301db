# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict, field
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single invocation
    env: str          # apply / dry-run / force
    context: Optional[str]  # item name, None for run-level events

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(env: str, context: Optional[str]) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": str(uuid.uuid4()),
        "env": env,
        "context": context,
    }


# ---------------------------------------------------------------------
# Run lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RunStarted(BaseEvent):
    config_path: str
    root: str
    dry_run: bool
    force: bool


@dataclass(frozen=True)
class PlanComputed(BaseEvent):
    order: List[str]


@dataclass(frozen=True)
class PlanFailed(BaseEvent):
    error: str


@dataclass(frozen=True)
class RunSummary(BaseEvent):
    changed: bool
    dry_run: bool = False
    updated: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    would_update: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class TerminalActionDecided(BaseEvent):
    action: str
    reason: str


# ---------------------------------------------------------------------
# Per-target / per-item lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class TargetChecked(BaseEvent):
    target: str
    needs_update: bool
    reason: str
    forced: bool = False


@dataclass(frozen=True)
class BackupRecorded(BaseEvent):
    source: str
    destination: str
    materialized: bool


@dataclass(frozen=True)
class TargetApplied(BaseEvent):
    target: str
    detail: str


@dataclass(frozen=True)
class ItemCompleted(BaseEvent):
    verdict: str
    changes: List[str] = field(default_factory=list)
    duration_ms: int = 0


@dataclass(frozen=True)
class ItemFailed(BaseEvent):
    operation: str
    error: str
