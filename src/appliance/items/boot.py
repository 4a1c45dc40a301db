# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/items/boot.py
from __future__ import annotations

from functools import partial
from typing import Optional

from ..reconcile import detect
from ..reconcile.applier import Item
from ..reconcile.detect import Detection
from ..reconcile.edits import ensure_cmdline_token, ensure_in_section, remove_lines
from ..system.hardware import BootMemoryScheme, select_scheme
from .common import EditTarget

CONFIG_TXT = "/boot/firmware/config.txt"
CMDLINE_TXT = "/boot/firmware/cmdline.txt"
IPV6_TOKEN = "ipv6.disable=1"


def _memory_target(path, scheme: BootMemoryScheme) -> EditTarget:
    def current_line(text: Optional[str]) -> Optional[str]:
        for ln in (text or "").splitlines():
            if scheme.matches(ln.strip()):
                return ln.strip()
        return None

    def describe(text: Optional[str]) -> Detection:
        return detect.scalar(scheme.key, current_line(text), scheme.line)

    return EditTarget(
        f"memory ({scheme.line})",
        path,
        partial(ensure_in_section, line=scheme.line, replaces=scheme.matches),
        describe=describe,
    )


def _overlay_target(path, overlay: str, wanted: bool) -> EditTarget:
    line = f"dtoverlay={overlay}"
    is_line = lambda s: s == line  # noqa: E731

    def describe(text: Optional[str]) -> Detection:
        present = any(is_line(ln.strip()) for ln in (text or "").splitlines())
        return detect.scalar(line, present, wanted)

    if wanted:
        transform = partial(ensure_in_section, line=line, replaces=is_line)
    else:
        transform = partial(remove_lines, drop=is_line)
    return EditTarget(overlay, path, transform, describe=describe)


def _ipv6_target(path, wanted: bool) -> EditTarget:
    def describe(text: Optional[str]) -> Detection:
        present = IPV6_TOKEN in (text or "").split()
        return detect.scalar(IPV6_TOKEN, present, wanted)

    def transform(text: Optional[str]) -> str:
        if wanted:
            return ensure_cmdline_token(text, IPV6_TOKEN)
        return " ".join(t for t in (text or "").split() if t != IPV6_TOKEN) + "\n"

    return EditTarget("kernel ipv6 flag", path, transform, describe=describe)


class BootItem(Item):
    """
    Firmware config.txt and kernel cmdline.txt.

    The memory scheme is chosen once per run from the board model.
    """

    name = "boot"
    value_key = "gpu_memory"
    stamp_key = "boot_configured"

    def targets(self, settings, host, state):
        boot = settings.boot
        config = host.path(CONFIG_TXT)
        scheme = select_scheme(boot, host.board_model)
        return [
            _memory_target(config, scheme),
            _overlay_target(config, "disable-wifi", boot.disable_wifi),
            _overlay_target(config, "disable-bt", boot.disable_bluetooth),
            _ipv6_target(host.path(CMDLINE_TXT), boot.disable_ipv6),
        ]

    def state_value(self, settings, host) -> str:
        return str(settings.boot.gpu_memory)
