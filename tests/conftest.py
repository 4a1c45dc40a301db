import os
import shutil
import zipfile
from datetime import datetime
from pathlib import Path

import pytest

from appliance.config.loader import build_settings
from appliance.errors import CommandError
from appliance.observers.dispatcher import EventBus
from appliance.reconcile.edits import apply_directives
from appliance.reconcile.orchestrator import Orchestrator
from appliance.items.registry import default_items
from appliance.system.firewall import Rule
from appliance.system.host import Host
from appliance.utils.execution import RunContext
from appliance.utils.shell import CommandResult, CommandRunner, FailurePolicy

STARTED = datetime(2026, 3, 14, 9, 30, 0)

SEED = {
    "boot/firmware/config.txt": "dtparam=audio=on\ncamera_auto_detect=1\n\n[all]\narm_64bit=1\n",
    "boot/firmware/cmdline.txt": "console=serial0,115200 console=tty1 root=PARTUUID=abcd-02 rootfstype=ext4 rootwait\n",
    "etc/fstab": (
        "proc            /proc           proc    defaults          0       0\n"
        "PARTUUID=abcd-01  /boot/firmware  vfat    defaults          0       2\n"
        "PARTUUID=abcd-02  /               ext4    defaults          0       1\n"
        "/var/swap none swap sw 0 0\n"
    ),
    "proc/swaps": "Filename\t\t\t\tType\t\tSize\tUsed\tPriority\n/var/swap  file  102396  0  -2\n",
    "proc/sys/vm/swappiness": "60\n",
    "proc/device-tree/model": "Raspberry Pi 4 Model B Rev 1.4\x00",
    "var/swap": "swap",
    "var/log/apt/history.log": "Start-Date: 2026-01-01\n",
    "etc/systemd/journald.conf": "[Journal]\n#Storage=auto\n#RuntimeMaxUse=\n",
    "etc/systemd/system.conf": "[Manager]\n#LogLevel=info\n",
    "etc/systemd/user.conf": "[Manager]\n#LogLevel=info\n",
    "etc/ufw/ufw.conf": "ENABLED=no\nLOGLEVEL=low\n",
    "etc/default/ufw": 'IPV6=yes\nDEFAULT_INPUT_POLICY="DROP"\nDEFAULT_OUTPUT_POLICY="ACCEPT"\n',
    "home/airman/.profile": "# ~/.profile: executed by the command interpreter for login shells.\n",
}

UNITS = {
    "systemd-networkd.service": "disabled",
    "systemd-networkd-wait-online.service": "disabled",
    "ssh.service": "enabled",
    "dphys-swapfile.service": "enabled",
    "systemd-zram-setup@zram0.service": "static",
    "NetworkManager.service": "enabled",
    "avahi-daemon.service": "enabled",
    "cups.service": "enabled",
    "bluetooth.service": "enabled",
    "triggerhappy.service": "disabled",
    "fail2ban.service": "disabled",
}

UFW_POLICY = {"deny": "DROP", "allow": "ACCEPT", "reject": "REJECT"}


def _unit(name):
    return name if "." in name else f"{name}.service"


class FakeSystem(CommandRunner):
    """
    Stands in for the host's command-line tools, keeping their state in
    memory or in the files under *root* that the real tools would touch.
    """

    def __init__(self, root: Path):
        super().__init__()
        self.root = root
        self.calls = []
        self.probes = []
        self.units = dict(UNITS)
        self.installed = set()
        self.upgradable = []
        self.sshd_rc = 0
        self.sshd_stderr = ""
        self.failures = {}

    def fail(self, fragment, rc=1, times=None):
        self.failures[fragment] = [rc, times]

    def _failure(self, argv):
        line = " ".join(argv)
        for fragment, rule in self.failures.items():
            if fragment in line and rule[1] != 0:
                if rule[1] is not None:
                    rule[1] -= 1
                return rule[0]
        return 0

    def _file(self, p):
        return self.root / p.lstrip("/")

    def _set_key(self, p, key, line):
        f = self._file(p)
        text = f.read_text() if f.exists() else None
        f.parent.mkdir(parents=True, exist_ok=True)
        f.write_text(apply_directives(text, {key: line}))

    # ---- commands ----
    def run(self, argv, *, policy=FailurePolicy.FATAL, allow_rc=None, input=None):
        argv = [str(a) for a in argv]
        self.calls.append(argv)
        rc = self._failure(argv)
        if rc:
            if policy is FailurePolicy.IGNORABLE:
                return CommandResult(tuple(argv), rc, "", "boom", ignored=True)
            raise CommandError(argv, rc, "boom")
        self._mutate(argv)
        return CommandResult(tuple(argv), 0)

    def _mutate(self, argv):
        if argv[0] == "systemctl":
            args = [a for a in argv[1:] if not a.startswith("--")]
            verb, unit = args[0], _unit(args[-1]) if len(args) > 1 else None
            if verb == "enable":
                self.units[unit] = "enabled"
            elif verb == "disable" and self.units.get(unit) == "enabled":
                self.units[unit] = "disabled"
            elif verb == "mask":
                self.units[unit] = "masked"
        elif "apt-get" in argv:
            i = argv.index("apt-get")
            verb, names = argv[i + 3], argv[i + 4:]
            if verb == "install":
                self.installed.update(names)
        elif argv[0] == "ufw":
            self._ufw(argv[1:])
        elif argv[:2] == ["swapoff", "-a"]:
            self._file("/proc/swaps").write_text("Filename\t\t\t\tType\t\tSize\tUsed\tPriority\n")
        elif argv[:3] == ["modprobe", "-r", "zram"]:
            shutil.rmtree(self._file("/sys/module/zram"), ignore_errors=True)

    def _ufw(self, args):
        if args[:2] == ["--force", "default"]:
            key = "DEFAULT_INPUT_POLICY" if args[3] == "incoming" else "DEFAULT_OUTPUT_POLICY"
            self._set_key("/etc/default/ufw", key, f'{key}="{UFW_POLICY[args[2]]}"')
        elif args == ["--force", "enable"]:
            self._set_key("/etc/ufw/ufw.conf", "ENABLED", "ENABLED=yes")
        elif args[0] == "allow":
            proto = args[args.index("proto") + 1]
            port = args[args.index("port") + 1] if "port" in args else None
            if args[1] == "out":
                r = Rule.outbound(proto, port)
            else:
                r = Rule.inbound(proto, args[2], port)
            line = f"### tuple ### {r.action} {r.proto} {r.port} {r.dst} {r.sport} {r.src} {r.direction}\n"
            f = self._file("/etc/ufw/user.rules")
            text = f.read_text() if f.exists() else ""
            if line not in text:
                f.parent.mkdir(parents=True, exist_ok=True)
                f.write_text(text + line)

    # ---- queries ----
    def probe(self, argv):
        argv = [str(a) for a in argv]
        self.probes.append(argv)
        if argv[0] == "systemctl":
            return self._systemctl_query([a for a in argv[1:] if not a.startswith("--")], argv)
        if argv[0] == "dpkg-query":
            names = argv[next(i for i, a in enumerate(argv) if a.startswith("-f=")) + 1:]
            out = "".join(f"{n} installed\n" for n in names if n in self.installed)
            return CommandResult(tuple(argv), 0 if len(out.splitlines()) == len(names) else 1, out)
        if argv[0] == "sshd":
            return CommandResult(tuple(argv), self.sshd_rc, "", self.sshd_stderr)
        if argv[:3] == ["apt", "list", "--upgradable"]:
            return CommandResult(tuple(argv), 0, "Listing...\n" + "".join(f"{ln}\n" for ln in self.upgradable))
        if argv[:2] == ["ufw", "status"]:
            enabled = "ENABLED=yes" in (self._file("/etc/ufw/ufw.conf").read_text())
            return CommandResult(tuple(argv), 0, f"Status: {'active' if enabled else 'inactive'}\n")
        return CommandResult(tuple(argv), 127, "", f"{argv[0]}: not found")

    def _systemctl_query(self, args, argv):
        verb, unit = args[0], _unit(args[-1])
        if verb == "list-unit-files":
            # no suffixing here: the real command matches names literally
            unit = args[-1]
        state = self.units.get(unit)
        if verb == "is-enabled":
            if state is None:
                return CommandResult(tuple(argv), 1, "", f"Failed to get unit file state for {unit}")
            return CommandResult(tuple(argv), 0 if state in ("enabled", "static") else 1, f"{state}\n")
        if verb == "list-unit-files":
            if state is None:
                return CommandResult(tuple(argv), 1, "")
            return CommandResult(tuple(argv), 0, f"{unit} {state} enabled\n")
        if verb == "is-active":
            return CommandResult(tuple(argv), 0 if state == "enabled" else 3)
        return CommandResult(tuple(argv), 1)


class Capture:
    def __init__(self):
        self.events = []

    def notify(self, ev):
        self.events.append(ev)

    def of(self, kind):
        return [e for e in self.events if isinstance(e, kind)]


def seed_root(root: Path) -> Path:
    for rel, content in SEED.items():
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content)
    (root / "sys/module/zram").mkdir(parents=True)
    return root


def snapshot_tree(root: Path) -> dict:
    """Every path under *root* with its content, link target or kind."""
    out = {}
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            p = Path(dirpath) / name
            rel = str(p.relative_to(root))
            if p.is_symlink():
                out[rel] = ("link", os.readlink(p))
            elif p.is_dir():
                out[rel] = ("dir",)
            else:
                out[rel] = ("file", p.read_bytes(), p.stat().st_mode & 0o7777)
    return out


def make_payload(path: Path, members=None) -> Path:
    members = members or {
        "AirPlayer": "#!/bin/sh\necho player\n",
        "Bootloader": "#!/bin/sh\necho boot\n",
        "update.sh": "#!/bin/sh\n",
        "lib/libairplayer.so": "ELF",
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return path


def properties(payload: Path, **overrides) -> dict:
    flat = {
        "SYSTEM_USER": "airman",
        "SYSTEM_USER_HOME": "/home/airman",
        "NETWORK_INTERFACE": "eth0",
        "NETWORK_IP": "192.168.1.50",
        "NETWORK_SUBNET": "24",
        "NETWORK_GATEWAY": "192.168.1.1",
        "NETWORK_DNS": "192.168.1.1 1.1.1.1",
        "SSH_PORT": "22",
        "SSH_ALLOWED_USER": "airman",
        "SSH_ALLOWED_NETWORK": "192.168.1.0/24",
        "GPU_MEMORY": "384",
        "AIRPLAYER_ZIP_NAME": str(payload),
        "AIRPLAYER_INSTALL_DIR": "/home/airman/AirPlayer",
        "NUM_DISPLAYS": "2",
        "PRIMARY_DISPLAY": "HDMI-1",
        "PRIMARY_RESOLUTION": "1920x1080",
        "PRIMARY_ROTATION": "normal",
        "SECONDARY_DISPLAY": "HDMI-2",
        "SECONDARY_RESOLUTION": "1280x720",
        "SECONDARY_ROTATION": "normal",
        "SECONDARY_POSITION": "right-of",
        "FIREWALL_ALLOWED_NETWORK": "192.168.1.0/24",
        "FIREWALL_AIRMANAGER_IP": "192.168.1.10",
        "FIREWALL_PORT_HTTP": "8080",
        "FIREWALL_PORT_API": "8081",
        "FIREWALL_PORT_AIRPLAYER": "9000",
    }
    flat.update(overrides)
    return flat


@pytest.fixture(autouse=True)
def _unprivileged(monkeypatch):
    # ownership changes only happen as root; tests run as the invoking user
    monkeypatch.setattr(os, "geteuid", lambda: 1000)


@pytest.fixture
def root(tmp_path):
    return seed_root(tmp_path / "root")


@pytest.fixture
def fake(root):
    return FakeSystem(root)


@pytest.fixture
def payload(tmp_path):
    return make_payload(tmp_path / "input" / "AirPlayer.zip")


@pytest.fixture
def props(payload):
    def _props(**overrides):
        return properties(payload, **overrides)
    return _props


@pytest.fixture
def make_settings(props):
    def _make(**overrides):
        return build_settings(props(**overrides))
    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def make_host(root, fake):
    def _make(*, dry_run=False, force=False):
        return Host(RunContext(dry_run=dry_run, force=force, root=root, started=STARTED), fake)
    return _make


@pytest.fixture
def reconcile(make_host):
    """Run every item once; returns (report, captured events)."""

    def _run(settings, *, dry_run=False, force=False, items=None):
        cap = Capture()
        host = make_host(dry_run=dry_run, force=force)
        report = Orchestrator(
            settings,
            host,
            items if items is not None else default_items(),
            bus=EventBus([cap], run_id="test-run"),
            config_path="setup.properties",
        ).run()
        return report, cap

    return _run


@pytest.fixture
def capture():
    return Capture()


@pytest.fixture
def snapshot(root):
    return lambda: snapshot_tree(root)
