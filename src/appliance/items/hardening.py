# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/items/hardening.py
from __future__ import annotations

import logging
import os
import shutil
from functools import partial
from pathlib import Path
from typing import List, Sequence, Tuple

from ..errors import ApplianceError
from ..reconcile.applier import Item, Target
from ..reconcile.detect import Detection, read_current
from ..reconcile.edits import add_noatime, apply_directives, comment_swap_entries
from ..reconcile.files import ensure_symlink, write_atomic
from ..reconcile.render import render
from ..system.firewall import Firewall, Rule
from ..system.services import ServiceManager
from ..system.swap import BLACKLIST_FILE
from ..utils.shell import CommandRunner, FailurePolicy
from .common import EditTarget, FileTarget

log = logging.getLogger("appliance")

JOURNALD_CONF = "/etc/systemd/journald.conf"
SYSTEM_CONF = "/etc/systemd/system.conf"
USER_CONF = "/etc/systemd/user.conf"
FSTAB = "/etc/fstab"
SWAPPINESS_CONF = "/etc/sysctl.d/99-swappiness.conf"
IPV6_CONF = "/etc/sysctl.d/99-disable-ipv6.conf"
JAIL_LOCAL = "/etc/fail2ban/jail.local"
LOG_DIRS = ("/var/log/apt", "/var/log/dpkg")
SWAP_FILE = "/var/swap"
ZRAM_UNIT = "systemd-zram-setup@zram0.service"
MASKED_UNITS = ("NetworkManager.service",)

JOURNALD = {"Storage": "Storage=volatile", "RuntimeMaxUse": "RuntimeMaxUse=32M"}
LOG_LEVEL = {"LogLevel": "LogLevel=warning"}


class LogDirsTarget(Target):
    """Package-manager log directories redirected to tmpfs."""

    name = "log dirs on tmpfs"

    def __init__(self, links: Sequence[Path], points_to: str = "/tmp"):
        self.links = tuple(links)
        self.points_to = points_to

    def paths(self) -> Sequence[Path]:
        return self.links

    def _wrong(self) -> List[Path]:
        return [p for p in self.links if not p.is_symlink() or os.readlink(p) != self.points_to]

    def detect(self) -> Detection:
        wrong = self._wrong()
        if wrong:
            return Detection(True, f"not symlinked: {' '.join(str(p) for p in wrong)}")
        return Detection(False, "log dirs symlinked")

    def apply(self) -> str:
        for p in self.links:
            if p.is_dir() and not p.is_symlink():
                shutil.rmtree(p)
            ensure_symlink(p, self.points_to)
        return f"linked {len(self.links)} log dirs to {self.points_to}"


class SwapTarget(Target):
    """
    Satisfied only when no swap device is active and compressed-memory swap
    cannot come back (zram loaded but not blacklisted counts as active).
    """

    name = "swap off"

    def __init__(self, host, services: ServiceManager, runner: CommandRunner):
        self.host = host
        self.probe = host.swap
        self.services = services
        self.runner = runner
        self.fstab = host.path(FSTAB)

    def paths(self) -> Sequence[Path]:
        return (self.fstab,)

    def detect(self) -> Detection:
        reasons = self.probe.reasons()
        if reasons:
            return Detection(True, "; ".join(reasons))
        return Detection(False, "no active swap")

    def apply(self) -> str:
        ignorable = FailurePolicy.IGNORABLE
        self.runner.run(["swapoff", "-a"], policy=ignorable)

        current = read_current(self.fstab)
        if current is not None:
            edited = comment_swap_entries(current)
            if edited != current:
                write_atomic(self.fstab, edited)

        if self.services.exists("dphys-swapfile.service"):
            self.services.disable("dphys-swapfile.service")
        swap_file = self.host.path(SWAP_FILE)
        swap_file.unlink(missing_ok=True)

        self.services.disable(ZRAM_UNIT)
        self.services.mask(ZRAM_UNIT)
        self.runner.run(["modprobe", "-r", "zram"], policy=ignorable)
        write_atomic(self.host.path(BLACKLIST_FILE), render("zram-blacklist.conf.j2"), mode=0o644)

        still = self.probe.active_devices()
        if still:
            raise ApplianceError(f"swap still active after deactivation: {', '.join(still)}")
        return "swap disabled, zram blacklisted"


class FirewallTarget(Target):
    """
    Default-deny inbound, allow outbound, plus the required allow rules.
    Rules already present and unrelated extra rules are left alone.
    """

    name = "firewall"

    def __init__(self, firewall: Firewall, rules: Sequence[Rule]):
        self.fw = firewall
        self.rules = tuple(rules)

    def paths(self) -> Sequence[Path]:
        return (self.fw.conf_path, self.fw.defaults_path)

    def _problems(self) -> List[str]:
        out = []
        if not self.fw.enabled():
            out.append("ufw disabled")
        if (self.fw.ipv6() or "").lower() != "no":
            out.append("ufw IPv6 not off")
        if self.fw.defaults() != ("DROP", "ACCEPT"):
            out.append("default policy not deny-in/allow-out")
        missing = set(self.rules) - self.fw.rules()
        if missing:
            out.append("missing rules: " + ", ".join(sorted(str(r) for r in missing)))
        return out

    def detect(self) -> Detection:
        problems = self._problems()
        if problems:
            return Detection(True, "; ".join(problems))
        return Detection(False, f"ufw active with {len(self.rules)} required rules")

    def apply(self) -> str:
        defaults = read_current(self.fw.defaults_path)
        write_atomic(self.fw.defaults_path, apply_directives(defaults, {"IPV6": "IPV6=no"}))
        self.fw.set_default("deny", "incoming")
        self.fw.set_default("allow", "outgoing")
        for rule in self.rules:
            self.fw.allow(rule)
        self.fw.enable()
        return f"ufw enabled with {len(self.rules)} rules"


class ServicesOffTarget(Target):
    """Units on the deny-list that exist must be neither enabled nor active."""

    name = "unneeded services"

    def __init__(self, services: ServiceManager, units: Sequence[str]):
        self.services = services
        self.units = tuple(units)

    def _running(self) -> List[str]:
        return [
            u for u in self.units
            if self.services.exists(u) and (self.services.is_enabled(u) or self.services.is_active(u))
        ]

    def detect(self) -> Detection:
        on = self._running()
        if on:
            return Detection(True, f"still enabled: {' '.join(on)}")
        return Detection(False, f"{len(self.units)} services off")

    def apply(self) -> str:
        on = self._running()
        for u in on:
            self.services.disable(u)
        return f"disabled {' '.join(on) or 'nothing'}"


class MaskedTarget(Target):
    def __init__(self, services: ServiceManager, units: Sequence[str]):
        self.name = f"masked {' '.join(units)}"
        self.services = services
        self.units = tuple(units)

    def detect(self) -> Detection:
        unmasked = [u for u in self.units if not self.services.is_masked(u)]
        if unmasked:
            return Detection(True, f"not masked: {' '.join(unmasked)}")
        return Detection(False, "masked")

    def apply(self) -> str:
        for u in self.units:
            self.services.mask(u)
        return f"masked {' '.join(self.units)}"


def firewall_rules(settings) -> Tuple[Rule, ...]:
    fw = settings.firewall
    am = fw.airmanager_ip
    return (
        Rule.inbound("tcp", fw.allowed_network, settings.ssh.port),
        Rule.outbound("udp", 53),
        Rule.outbound("udp", 123),
        Rule.inbound("tcp", am, fw.port_http),
        Rule.inbound("tcp", am, fw.port_api),
        Rule.inbound("tcp", am, fw.port_airplayer),
        Rule.inbound("tcp", am),
        Rule.inbound("udp", am),
    )


class HardeningItem(Item):
    name = "hardening"
    depends_on = ("network", "ssh", "packages")
    value_key = "firewall_airmanager_ip"
    stamp_key = "hardening_configured"

    def targets(self, settings, host, state):
        svc = host.services
        runner = host.runner
        ignorable = FailurePolicy.IGNORABLE

        def restart_journald():
            svc.restart("systemd-journald", policy=ignorable)

        def sysctl(arg):
            return lambda: runner.run(["sysctl", arg], policy=ignorable)

        def start_fail2ban():
            svc.enable("fail2ban")
            svc.restart("fail2ban", policy=ignorable)

        targets: List[Target] = [
            EditTarget(
                "volatile journal",
                host.path(JOURNALD_CONF),
                partial(apply_directives, directives=JOURNALD),
                after=restart_journald,
            ),
            LogDirsTarget([host.path(p) for p in LOG_DIRS]),
            EditTarget("system log level", host.path(SYSTEM_CONF), partial(apply_directives, directives=LOG_LEVEL)),
            EditTarget("user log level", host.path(USER_CONF), partial(apply_directives, directives=LOG_LEVEL)),
            EditTarget("noatime mounts", host.path(FSTAB), add_noatime),
            SwapTarget(host, svc, runner),
            FileTarget(
                "swappiness",
                host.path(SWAPPINESS_CONF),
                render("swappiness.conf.j2"),
                mode=0o644,
                after=sysctl("vm.swappiness=0"),
            ),
        ]
        if settings.boot.disable_ipv6:
            targets.append(
                FileTarget(
                    "ipv6 sysctl",
                    host.path(IPV6_CONF),
                    render("disable-ipv6.conf.j2"),
                    mode=0o644,
                    after=lambda: runner.run(["sysctl", "-p", str(host.path(IPV6_CONF))], policy=ignorable),
                )
            )
        targets += [
            FirewallTarget(host.firewall, firewall_rules(settings)),
            FileTarget(
                "fail2ban jail",
                host.path(JAIL_LOCAL),
                render("jail.local.j2", ssh_port=settings.ssh.port),
                mode=0o644,
                after=start_fail2ban,
            ),
            ServicesOffTarget(svc, settings.hardening.services_to_disable),
            MaskedTarget(svc, MASKED_UNITS),
        ]
        return targets

    def state_value(self, settings, host) -> str:
        return settings.firewall.airmanager_ip
