# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/reconcile/detect.py
from __future__ import annotations

import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import AbstractSet, Any, Optional


@dataclass(frozen=True)
class Detection:
    needs_update: bool
    reason: str
    forced: bool = False
    # False when applying would re-do work without changing the artifact
    material: bool = True


def needs_update(current: Any, desired: Any) -> bool:
    """
    Compare a live value against its desired value.

    - absent (None) always needs an update
    - sets are membership targets: only missing elements count
    - everything else compares by equality in its native type
    """
    if current is None:
        return True
    if isinstance(desired, AbstractSet):
        return not set(desired) <= set(current)
    return current != desired


def read_current(path: Path) -> Optional[str]:
    """
    Current content of *path*, or None when it does not exist.

    An existing file that cannot be read raises (PermissionError etc.).
    """
    if not path.exists():
        return None
    return path.read_text()


def content(path: Path, desired: str) -> Detection:
    current = read_current(path)
    if current is None:
        return Detection(True, f"{path} missing")
    if needs_update(current, desired):
        return Detection(True, f"{path} differs from desired content")
    return Detection(False, f"{path} up to date")


def scalar(name: str, current: Any, desired: Any) -> Detection:
    if current is None:
        return Detection(True, f"{name} not set (want {desired})")
    if needs_update(current, desired):
        return Detection(True, f"{name}={current} (want {desired})")
    return Detection(False, f"{name}={current}")


def members(name: str, current: AbstractSet[str], desired: AbstractSet[str]) -> Detection:
    missing = sorted(set(desired) - set(current))
    if missing:
        return Detection(True, f"{name} missing: {' '.join(missing)}")
    return Detection(False, f"all {len(desired)} {name} present")


def read_key(text: Optional[str], key: str, sep: str = "=") -> Optional[str]:
    """Value of the last uncommented ``key<sep>value`` line, stripped."""
    if text is None:
        return None
    pat = re.compile(rf"^\s*{re.escape(key)}\s*{re.escape(sep)}\s*(.*?)\s*$")
    found = None
    for line in text.splitlines():
        m = pat.match(line)
        if m:
            found = m.group(1)
    return found


class ForceOverride:
    """
    Wraps detection so --force reports every target as needing an update
    while keeping the underlying comparison's reason for reporting.
    """

    def __init__(self, force: bool):
        self.force = force

    def check(self, target) -> Detection:
        det = target.detect()
        if not self.force:
            return det
        return replace(det, needs_update=True, forced=not det.needs_update, material=True)
