# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/maintenance/diagnostics.py
"""Read-only health report of a configured appliance."""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..config.models import Settings
from ..items.boot import CONFIG_TXT
from ..items.hardening import FSTAB, JAIL_LOCAL, SWAPPINESS_CONF, firewall_rules
from ..items.ssh import SSHD_CONFIG
from ..reconcile.detect import read_current, read_key
from ..reconcile.edits import comment_swap_entries
from ..reconcile.state import StateStore
from ..system.hardware import select_scheme
from ..system.host import Host

log = logging.getLogger("appliance")

SWAP_FILES = ("/var/swap", "/swap", "/swapfile")
TEMP_OK_C = 70.0
TEMP_HOT_C = 80.0


@dataclass
class Check:
    title: str
    ok: Optional[bool]  # None = informational
    detail: str = ""

    def line(self) -> str:
        mark = {True: "✓", False: "✗", None: "·"}[self.ok]
        return f"{mark} {self.title}" + (f": {self.detail}" if self.detail else "")


@dataclass
class Section:
    title: str
    checks: List[Check] = field(default_factory=list)
    raw: List[tuple] = field(default_factory=list)

    def add(self, title: str, ok: Optional[bool], detail: str = "") -> None:
        self.checks.append(Check(title, ok, detail))


def _probe(host: Host, argv) -> str:
    res = host.runner.probe(argv)
    return (res.stdout or res.stderr).strip()


def _swap(host: Host) -> Section:
    s = Section("SWAP CONFIGURATION")
    devices = host.swap.active_devices()
    s.add("Swap disabled", not devices, ", ".join(devices) or "no active swap")
    swappiness = read_current(host.path("/proc/sys/vm/swappiness"))
    value = swappiness.strip() if swappiness else "unknown"
    s.add("Swappiness is 0", value == "0", f"vm.swappiness = {value}")
    s.add("Swappiness config present", host.path(SWAPPINESS_CONF).is_file(), SWAPPINESS_CONF)
    s.add("dphys-swapfile absent", not host.services.exists("dphys-swapfile.service"))
    found = [p for p in SWAP_FILES if host.path(p).exists()]
    s.add("No swap files on disk", not found, ", ".join(found))
    fstab = read_current(host.path(FSTAB))
    s.add("No active fstab swap entries", fstab is None or comment_swap_entries(fstab) == fstab)
    return s


def _boot(host: Host, settings: Optional[Settings]) -> Section:
    s = Section("GPU MEMORY CONFIGURATION")
    text = read_current(host.path(CONFIG_TXT))
    if text is None:
        s.add("config.txt present", False, CONFIG_TXT)
        return s
    if settings is not None:
        scheme = select_scheme(settings.boot, host.board_model)
        present = any(ln.strip() == scheme.line for ln in text.splitlines())
        s.add(f"config.txt has {scheme.line}", present)
    else:
        s.add("gpu_mem", None, read_key(text, "gpu_mem") or "not set")
    s.raw.append(("vcgencmd get_mem gpu", _probe(host, ["vcgencmd", "get_mem", "gpu"])))
    return s


def _performance(host: Host) -> Section:
    s = Section("SYSTEM PERFORMANCE")
    raw = read_current(host.path("/sys/class/thermal/thermal_zone0/temp"))
    if raw and raw.strip().isdigit():
        temp = int(raw.strip()) / 1000.0
        ok = True if temp < TEMP_OK_C else (None if temp <= TEMP_HOT_C else False)
        s.add("CPU temperature", ok, f"{temp:.1f}°C")
    throttled = _probe(host, ["vcgencmd", "get_throttled"])
    if throttled.startswith("throttled="):
        s.add("No throttling", throttled == "throttled=0x0", throttled)
    s.raw.append(("Load average", (read_current(host.path("/proc/loadavg")) or "").strip()))
    return s


def _network(host: Host, settings: Optional[Settings]) -> Section:
    s = Section("NETWORK CONFIGURATION")
    if settings is not None:
        net = settings.network
        profile = host.path(f"/etc/systemd/network/10-{net.interface}.network")
        s.add("networkd profile present", profile.is_file(), str(profile))
        addrs = _probe(host, ["ip", "-4", "-o", "addr", "show", net.interface])
        s.add(f"{net.interface} has {net.cidr}", net.cidr in addrs)
    s.add("systemd-networkd enabled", host.services.is_enabled("systemd-networkd.service"))
    s.raw.append(("Default route", _probe(host, ["ip", "route", "show", "default"])))
    return s


def _firewall(host: Host, settings: Optional[Settings]) -> Section:
    s = Section("FIREWALL CONFIGURATION")
    fw = host.firewall
    s.add("UFW enabled", fw.enabled())
    if settings is not None:
        missing = set(firewall_rules(settings)) - fw.rules()
        s.add("Required rules present", not missing, ", ".join(sorted(str(r) for r in missing)))
    s.raw.append(("ufw status verbose", fw.status().strip()))
    return s


def _ssh(host: Host) -> Section:
    s = Section("SSH CONFIGURATION")
    s.add("sshd running", host.services.is_active("ssh.service"))
    text = read_current(host.path(SSHD_CONFIG))
    s.add("Password authentication off", (read_key(text, "PasswordAuthentication", " ") or "") == "no")
    s.add("Root login off", (read_key(text, "PermitRootLogin", " ") or "") == "no")
    s.add("Port", None, read_key(text, "Port", " ") or "22")
    return s


def _fail2ban(host: Host) -> Section:
    s = Section("FAIL2BAN CONFIGURATION")
    s.add("fail2ban running", host.services.is_active("fail2ban.service"))
    s.add("jail.local present", host.path(JAIL_LOCAL).is_file())
    s.raw.append(("fail2ban-client status sshd", _probe(host, ["fail2ban-client", "status", "sshd"])))
    return s


def _display(host: Host, settings: Optional[Settings]) -> Section:
    s = Section("DISPLAY CONFIGURATION")
    if settings is None:
        return s
    autostart = host.path(settings.system_user_home / ".config" / "openbox" / "autostart")
    text = read_current(autostart)
    s.add("Openbox autostart present", text is not None, str(autostart))
    if text is not None:
        outputs = sum(1 for ln in text.splitlines() if ln.startswith("xrandr --output"))
        want = len(settings.display.enabled)
        s.add("Configured display count", outputs == want, f"{outputs} of {want}")
    install = host.path(settings.payload.install_dir)
    s.add("Air Player installed", (install / "AirPlayer").exists(), str(install))
    s.add("Air Player running", host.runner.probe(["pgrep", "-x", "AirPlayer"]).returncode == 0)
    return s


def _state(host: Host) -> Section:
    s = Section("SETUP STATE")
    entries = StateStore(host.ctx).all()
    s.add("State ledger present", bool(entries))
    s.raw.append(("state", "\n".join(f"{k}={v}" for k, v in entries.items())))
    return s


def collect(host: Host, settings: Optional[Settings] = None) -> List[Section]:
    return [
        _swap(host),
        _boot(host, settings),
        _performance(host),
        _network(host, settings),
        _firewall(host, settings),
        _ssh(host),
        _fail2ban(host),
        _display(host, settings),
        _state(host),
    ]


def render_report(sections: List[Section], *, generated: datetime, hostname: str) -> str:
    bar = "=" * 76
    out = [
        "Air Player Appliance - System Diagnostics Report",
        f"Generated: {generated:%Y-%m-%d %H:%M:%S}",
        f"Hostname: {hostname}",
    ]
    for n, sec in enumerate(sections, start=1):
        out += ["", bar, f"{n}. {sec.title}", bar, ""]
        out += [c.line() for c in sec.checks]
        for title, text in sec.raw:
            out += ["", f"--- {title} ---", text or "(no output)"]

    failed = [c for sec in sections for c in sec.checks if c.ok is False]
    passed = [c for sec in sections for c in sec.checks if c.ok is True]
    out += ["", bar, f"{len(sections) + 1}. DIAGNOSTIC SUMMARY", bar, ""]
    out.append(f"{len(passed)} passed, {len(failed)} warnings")
    out += [f"✗ {c.title}" for c in failed]
    return "\n".join(out) + "\n"


def write_report(host: Host, settings: Optional[Settings], out_dir: Path) -> tuple[Path, List[Section]]:
    now = datetime.now()
    sections = collect(host, settings)
    path = Path(out_dir) / f"diagnostics-report-{now:%Y%m%d-%H%M%S}.txt"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_report(sections, generated=now, hostname=socket.gethostname()))
    log.debug("diagnostics report written to %s", path)
    return path, sections
