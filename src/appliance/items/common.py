# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/items/common.py
"""Target shapes shared by the items."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from ..reconcile import detect
from ..reconcile.applier import Target
from ..reconcile.detect import Detection, read_current
from ..reconcile.files import append_text, chown, write_atomic
from ..system.services import ServiceManager


class FileTarget(Target):
    """Whole-file content target."""

    def __init__(
        self,
        name: str,
        path: Path,
        desired: str,
        *,
        mode: Optional[int] = None,
        owner: Optional[str] = None,
        after: Optional[Callable[[], None]] = None,
    ):
        self.name = name
        self.path = path
        self.desired = desired
        self.mode = mode
        self.owner = owner
        self.after = after

    def paths(self) -> Sequence[Path]:
        return (self.path,)

    def detect(self) -> Detection:
        return detect.content(self.path, self.desired)

    def apply(self) -> str:
        write_atomic(self.path, self.desired, mode=self.mode, owner=self.owner)
        if self.after:
            self.after()
        return f"wrote {self.path}"


class EditTarget(Target):
    """
    Keyed settings inside a file someone else owns.

    The desired content is derived from the current content by *transform*;
    the file is rewritten whole when the two differ.
    """

    def __init__(
        self,
        name: str,
        path: Path,
        transform: Callable[[Optional[str]], str],
        *,
        describe: Optional[Callable[[Optional[str]], Detection]] = None,
        after: Optional[Callable[[], None]] = None,
    ):
        self.name = name
        self.path = path
        self.transform = transform
        self.describe = describe
        self.after = after

    def paths(self) -> Sequence[Path]:
        return (self.path,)

    def detect(self) -> Detection:
        current = read_current(self.path)
        if self.describe is not None:
            return self.describe(current)
        if detect.needs_update(current, self.transform(current)):
            return Detection(True, f"{self.path} needs edit")
        return Detection(False, f"{self.path} up to date")

    def apply(self) -> str:
        current = read_current(self.path)
        write_atomic(self.path, self.transform(current))
        if self.after:
            self.after()
        return f"edited {self.path}"


class MarkerTarget(Target):
    """Append-only block, present iff *marker* occurs in the file."""

    def __init__(self, name: str, path: Path, marker: str, block: str, *, owner: Optional[str] = None):
        self.name = name
        self.path = path
        self.marker = marker
        self.block = block
        self.owner = owner

    def paths(self) -> Sequence[Path]:
        return (self.path,)

    def detect(self) -> Detection:
        current = read_current(self.path)
        if current is None:
            return Detection(True, f"{self.path} missing")
        if self.marker not in current:
            return Detection(True, f"marker '{self.marker}' absent from {self.path}")
        return Detection(False, f"marker present in {self.path}")

    def apply(self) -> str:
        created = not self.path.exists()
        current = read_current(self.path) or ""
        if self.marker in current:
            return f"marker already in {self.path}"
        prefix = "" if not current or current.endswith("\n") else "\n"
        append_text(self.path, prefix + self.block)
        if created and self.owner:
            chown(self.path, self.owner)
        return f"appended to {self.path}"


class UnitsEnabledTarget(Target):
    def __init__(self, name: str, services: ServiceManager, units: Iterable[str]):
        self.name = name
        self.services = services
        self.units = tuple(units)

    def detect(self) -> Detection:
        off = [u for u in self.units if not self.services.is_enabled(u)]
        if off:
            return Detection(True, f"not enabled: {' '.join(off)}")
        return Detection(False, "enabled")

    def apply(self) -> str:
        for u in self.units:
            self.services.enable(u)
        return f"enabled {' '.join(self.units)}"
