# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/maintenance/update.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List

from ..system.host import Host
from ..utils.shell import FailurePolicy

log = logging.getLogger("appliance")

RPI_REPO = re.compile(r"(raspbian|archive)\.raspberrypi\.com")
SECURITY_REPO = re.compile(r"deb\.debian\.org.*security|security\.debian\.org")
REBOOT_REQUIRED = "/var/run/reboot-required"


@dataclass
class UpdateReport:
    warnings: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    upgradable: List[str] = field(default_factory=list)
    security: List[str] = field(default_factory=list)
    cancelled: bool = False
    upgraded: bool = False
    full_upgrade_ok: bool = True
    reboot_required: bool = False
    reboot_packages: List[str] = field(default_factory=list)


def apt_sources(host: Host) -> List[str]:
    """Active repository lines from sources.list, *.list and deb822 *.sources."""
    out: List[str] = []
    files = [host.path("/etc/apt/sources.list")]
    d = host.path("/etc/apt/sources.list.d")
    if d.is_dir():
        files += sorted(d.glob("*.list")) + sorted(d.glob("*.sources"))
    for f in files:
        if not f.is_file():
            continue
        for ln in f.read_text().splitlines():
            s = ln.strip()
            if s.startswith("deb ") or s.startswith("URIs:") or s.startswith("Suites:"):
                out.append(s)
    return out


def validate_sources(sources: List[str]) -> List[str]:
    text = "\n".join(sources)
    warnings = []
    if not RPI_REPO.search(text):
        warnings.append("Official Raspberry Pi repository not found")
    if not SECURITY_REPO.search(text) and "-security" not in text:
        warnings.append("Debian security repository not found")
    return warnings


def run_update(
    host: Host,
    *,
    confirm: Callable[[str], bool],
    echo: Callable[[str], None] = log.info,
) -> UpdateReport:
    """
    Manual package update: validate repositories, refresh, review,
    upgrade, full-upgrade (failure only warns), autoremove, clean.
    """
    report = UpdateReport()
    pm = host.packages

    report.sources = apt_sources(host)
    report.warnings = validate_sources(report.sources)
    for w in report.warnings:
        echo(f"⚠ {w}")
    for s in report.sources:
        echo(f"  {s}")
    if not confirm("Do repositories look correct?"):
        report.cancelled = True
        return report

    pm.refresh()

    report.upgradable = pm.upgradable()
    if not report.upgradable:
        echo("System is already up to date")
    else:
        report.security = [ln for ln in report.upgradable if "security" in ln.lower()]
        echo(f"{len(report.upgradable)} package(s) can be upgraded ({len(report.security)} security)")
        for ln in report.upgradable:
            echo(f"  {ln}")
        if not confirm("Continue with the upgrade?"):
            report.cancelled = True
            return report

        pm.upgrade()
        res = pm.full_upgrade(policy=FailurePolicy.IGNORABLE)
        report.full_upgrade_ok = not res.ignored
        if res.ignored:
            echo("⚠ Full upgrade had issues (may be safe to ignore)")
        pm.autoremove()
        pm.clean()
        report.upgraded = True

    flag = host.path(REBOOT_REQUIRED)
    report.reboot_required = flag.exists()
    pkgs = host.path(REBOOT_REQUIRED + ".pkgs")
    if pkgs.exists():
        report.reboot_packages = [ln.strip() for ln in pkgs.read_text().splitlines() if ln.strip()]
    return report

