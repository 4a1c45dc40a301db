# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/config/loader.py

import logging
import os
import re
import shlex
from pathlib import Path
from typing import Dict, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from ..errors import ConfigError
from .models import Settings

log = logging.getLogger("appliance")

ENV_VAR = "AIRPLAYER_PROPERTIES"
DEFAULT_NAME = "setup.properties"

_LINE = re.compile(r"^(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)=(.*)$")
_REF = re.compile(r"\$(?:\{([A-Za-z_][A-Za-z0-9_]*)\}|([A-Za-z_][A-Za-z0-9_]*))")

_ROLES = ("primary", "secondary", "tertiary")

# flat key -> location inside the Settings model
_KEYS: Dict[str, tuple] = {
    "SYSTEM_USER": ("system_user",),
    "SYSTEM_USER_HOME": ("system_user_home",),
    "PACKAGES": ("packages",),
    "NETWORK_INTERFACE": ("network", "interface"),
    "NETWORK_IP": ("network", "address"),
    "NETWORK_SUBNET": ("network", "prefix"),
    "NETWORK_GATEWAY": ("network", "gateway"),
    "NETWORK_DNS": ("network", "dns"),
    "SSH_PORT": ("ssh", "port"),
    "SSH_ALLOWED_USER": ("ssh", "allowed_user"),
    "SSH_ALLOWED_NETWORK": ("ssh", "allowed_network"),
    "SSH_ALLOW_AGENT_FORWARDING": ("ssh", "allow_agent_forwarding"),
    "SSH_ALLOW_TCP_FORWARDING": ("ssh", "allow_tcp_forwarding"),
    "GPU_MEMORY": ("boot", "gpu_memory"),
    "BOOT_MEMORY_SCHEME": ("boot", "memory_scheme"),
    "DISABLE_WIFI": ("boot", "disable_wifi"),
    "DISABLE_BLUETOOTH": ("boot", "disable_bluetooth"),
    "DISABLE_IPV6": ("boot", "disable_ipv6"),
    "NUM_DISPLAYS": ("display", "count"),
    "CURSOR_IDLE_TIME": ("display", "cursor_idle_time"),
    "XORG_KMS_DEVICE": ("display", "kms_device"),
    "AIRPLAYER_ZIP_NAME": ("payload", "archive"),
    "AIRPLAYER_INSTALL_DIR": ("payload", "install_dir"),
    "UDEV_VENDOR_ID": ("payload", "udev_vendor_id"),
    "UDEV_PRODUCT_ID": ("payload", "udev_product_id"),
    "FIREWALL_ALLOWED_NETWORK": ("firewall", "allowed_network"),
    "FIREWALL_AIRMANAGER_IP": ("firewall", "airmanager_ip"),
    "FIREWALL_PORT_HTTP": ("firewall", "port_http"),
    "FIREWALL_PORT_API": ("firewall", "port_api"),
    "FIREWALL_PORT_AIRPLAYER": ("firewall", "port_airplayer"),
    "SERVICES_TO_DISABLE": ("hardening", "services_to_disable"),
}

_DISPLAY_KEYS = {
    "output": "{R}_DISPLAY",
    "resolution": "{R}_RESOLUTION",
    "rotation": "{R}_ROTATION",
    "enabled": "{R}_DISPLAY_ENABLED",
}


def _expand(value: str, known: Mapping[str, str], env: Mapping[str, str]) -> str:
    def sub(m: re.Match) -> str:
        name = m.group(1) or m.group(2)
        if name in known:
            return known[name]
        return env.get(name, m.group(0))

    return _REF.sub(sub, value)


def parse_properties(text: str, env: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Parse a shell-style ``KEY=value`` file.

    Double-quoted and bare values expand ``$VAR`` / ``${VAR}`` against keys
    defined earlier in the file, then the environment. Single-quoted values
    are taken literally.
    """
    env = os.environ if env is None else env
    out: Dict[str, str] = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        m = _LINE.match(line)
        if not m:
            raise ConfigError(f"line {lineno}: expected KEY=value, got {raw!r}")
        key, rest = m.group(1), m.group(2)
        try:
            parts = shlex.split(rest, comments=True, posix=True)
        except ValueError as e:
            raise ConfigError(f"line {lineno}: {key}: {e}") from e
        literal = rest.lstrip().startswith("'")
        value = " ".join(parts)
        out[key] = value if literal else _expand(value, out, env)
    return out


def find_properties(explicit: Optional[str | Path] = None, *, cwd: Optional[Path] = None) -> Path:
    """
    Locate the desired-state file using this priority:

    1. ``--config`` option
    2. ``AIRPLAYER_PROPERTIES`` environment variable
    3. ``setup.properties`` in the current directory
    """
    if explicit:
        p = Path(explicit)
        if not p.is_file():
            raise ConfigError(f"properties file not found: {p}")
        return p

    env = os.environ.get(ENV_VAR)
    if env:
        p = Path(env)
        if not p.is_file():
            raise ConfigError(f"{ENV_VAR}={env} does not exist")
        return p

    p = (cwd or Path.cwd()) / DEFAULT_NAME
    if not p.is_file():
        raise ConfigError(f"{DEFAULT_NAME} not found; create one or pass --config")
    return p


def _put(data: dict, loc: tuple, value) -> None:
    cur = data
    for part in loc[:-1]:
        cur = cur.setdefault(part, {})
    cur[loc[-1]] = value


def _displays(flat: Mapping[str, str]) -> list:
    """Build exactly NUM_DISPLAYS descriptors; later ones are never read."""
    try:
        count = int(flat.get("NUM_DISPLAYS", "1"))
    except ValueError:
        return []
    count = max(0, min(count, len(_ROLES)))

    out = []
    for idx, role in enumerate(_ROLES[:count]):
        R = role.upper()
        d: dict = {"role": role}
        for field, tmpl in _DISPLAY_KEYS.items():
            key = tmpl.format(R=R)
            if key in flat and flat[key] != "":
                d[field] = flat[key]
        if "enabled" not in d:
            d["enabled"] = "no" if role == "tertiary" else "yes"
        if idx == 1:
            if flat.get("SECONDARY_POSITION"):
                d["position"] = flat["SECONDARY_POSITION"]
            d["relative_to"] = flat.get("PRIMARY_DISPLAY")
        elif idx == 2:
            if flat.get("TERTIARY_POSITION"):
                d["position"] = flat["TERTIARY_POSITION"]
            ref = flat.get("TERTIARY_POSITION_REFERENCE", "SECONDARY").upper()
            d["relative_to"] = flat.get("PRIMARY_DISPLAY") if ref == "PRIMARY" else flat.get("SECONDARY_DISPLAY")
        out.append(d)
    return out


def _key_for(loc: tuple) -> str:
    if len(loc) >= 3 and loc[:2] == ("display", "displays") and isinstance(loc[2], int):
        R = _ROLES[loc[2]].upper()
        field = loc[3] if len(loc) > 3 else None
        if field in _DISPLAY_KEYS:
            return _DISPLAY_KEYS[field].format(R=R)
        if field == "position":
            return f"{R}_POSITION"
        return f"{R}_DISPLAY*"
    for key, where in _KEYS.items():
        if tuple(loc[: len(where)]) == where:
            return key
    return ".".join(str(p) for p in loc) or "<settings>"


def build_settings(flat: Mapping[str, str], *, base_dir: Optional[Path] = None) -> Settings:
    data: dict = {}
    for key, loc in _KEYS.items():
        if key in flat and flat[key] != "":
            _put(data, loc, flat[key])

    archive = data.get("payload", {}).get("archive")
    if archive and base_dir is not None and not Path(archive).is_absolute():
        data["payload"]["archive"] = str(base_dir / archive)

    data.setdefault("display", {})["displays"] = _displays(flat)

    try:
        return Settings.model_validate(data)
    except PydanticValidationError as e:
        problems = [f"{_key_for(err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ConfigError("invalid configuration:\n  " + "\n  ".join(problems)) from e


def load_settings(path: str | Path) -> Settings:
    """
    Load and validate the desired-state properties file.

    Relative payload archive names resolve against the file's directory.
    """
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    flat = parse_properties(text)
    log.debug("Loaded %d keys from %s", len(flat), path)
    return build_settings(flat, base_dir=path.resolve().parent)
