# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/items/payload.py
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Sequence

from ..reconcile.applier import Item, Target
from ..reconcile.detect import Detection
from ..reconcile.files import chown, ensure_symlink
from ..reconcile.render import render
from ..reconcile.state import ItemState
from ..system.archive import PayloadArchive, make_executable
from ..utils.shell import FailurePolicy
from .common import FileTarget

log = logging.getLogger("appliance")

UDEV_RULES = "/etc/udev/rules.d/42-knobster.rules"
LIBDIR = "/usr/lib/aarch64-linux-gnu"
EXECUTABLES = ("Bootloader", "AirPlayer")


class ExtractTarget(Target):
    """
    Re-extracted on every real run: the archive's internal version cannot be
    inspected, so an upgrade must always land. It only counts as a change
    when the archive digest differs from the one last recorded.
    """

    name = "payload extraction"

    def __init__(self, archive: PayloadArchive, install_dir: Path, owner: str, state: ItemState):
        self.archive = archive
        self.install_dir = install_dir
        self.owner = owner
        self.state = state

    def detect(self) -> Detection:
        digest = self.archive.sha256()
        if not self.install_dir.is_dir():
            return Detection(True, f"{self.install_dir} missing")
        if self.state.value != digest:
            return Detection(True, f"new archive {digest[:12]}")
        return Detection(True, "re-extracting unchanged archive", material=False)

    def apply(self) -> str:
        names = self.archive.extract(self.install_dir)
        make_executable([self.install_dir / n for n in EXECUTABLES] + sorted(self.install_dir.glob("*.sh")))
        if os.geteuid() == 0:
            for dirpath, dirnames, filenames in os.walk(self.install_dir):
                for n in [dirpath, *(os.path.join(dirpath, x) for x in dirnames + filenames)]:
                    chown(Path(n), self.owner)
        return f"extracted {len(names)} files into {self.install_dir}"


class SymlinkTarget(Target):
    def __init__(self, name: str, link: Path, points_to: str):
        self.name = name
        self.link = link
        self.points_to = points_to

    def paths(self) -> Sequence[Path]:
        return (self.link,)

    def detect(self) -> Detection:
        if self.link.is_symlink() and os.readlink(self.link) == self.points_to:
            return Detection(False, f"{self.link} -> {self.points_to}")
        return Detection(True, f"{self.link} is not a link to {self.points_to}")

    def apply(self) -> str:
        ensure_symlink(self.link, self.points_to)
        return f"linked {self.link} -> {self.points_to}"


class PayloadItem(Item):
    name = "payload"
    depends_on = ("packages",)
    value_key = "airplayer_archive_sha256"
    stamp_key = "airplayer_installed"
    requires_reboot = False

    def _archive(self, settings) -> PayloadArchive:
        return PayloadArchive(settings.payload.archive)

    def preflight(self, settings, host) -> None:
        self._archive(settings).require()

    def targets(self, settings, host, state):
        p = settings.payload

        def reload_udev():
            host.runner.run(["udevadm", "control", "--reload-rules"], policy=FailurePolicy.IGNORABLE)

        return [
            ExtractTarget(self._archive(settings), host.path(p.install_dir), settings.system_user, state),
            FileTarget(
                "usb device rules",
                host.path(UDEV_RULES),
                render("udev.rules.j2", vendor=p.udev_vendor_id.lower(), product=p.udev_product_id.lower()),
                mode=0o644,
                after=reload_udev,
            ),
            SymlinkTarget("libzip compat link", host.path(f"{LIBDIR}/libzip.so.4"), f"{LIBDIR}/libzip.so.5"),
        ]

    def state_value(self, settings, host) -> str:
        return self._archive(settings).sha256()
