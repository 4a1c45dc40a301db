# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from typing import Sequence

from ..reconcile import detect
from ..reconcile.applier import Item, Target
from ..reconcile.detect import Detection
from ..system.packages import PackageManager


class PackageSetTarget(Target):
    """Required packages present; extra installed packages are ignored."""

    name = "package set"

    def __init__(self, packages: PackageManager, required: Sequence[str]):
        self.packages = packages
        self.required = frozenset(required)

    def detect(self) -> Detection:
        return detect.members("packages", self.packages.installed(sorted(self.required)), self.required)

    def apply(self) -> str:
        self.packages.refresh()
        self.packages.install(self.required)
        self.packages.full_upgrade()
        self.packages.autoremove()
        return f"installed {len(self.required)} packages, upgraded system"


class PackagesItem(Item):
    name = "packages"
    depends_on = ("network",)
    value_key = "packages"
    stamp_key = "packages_installed"

    def targets(self, settings, host, state):
        return [PackageSetTarget(host.packages, settings.packages)]

    def state_value(self, settings, host) -> str:
        return ",".join(sorted(set(settings.packages)))
