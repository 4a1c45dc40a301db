# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import re
from typing import List

from ..utils.execution import RunContext

BLACKLIST_FILE = "/etc/modprobe.d/airplayer-blacklist-zram.conf"

_BLACKLIST = re.compile(r"^\s*blacklist\s+zram\s*$", re.M)


class SwapProbe:
    """Reads swap state from /proc and /sys; never mutates."""

    def __init__(self, ctx: RunContext):
        self.ctx = ctx

    def active_devices(self) -> List[str]:
        p = self.ctx.path("/proc/swaps")
        if not p.exists():
            return []
        lines = p.read_text().splitlines()[1:]
        return [ln.split()[0] for ln in lines if ln.strip()]

    def zram_loaded(self) -> bool:
        return self.ctx.path("/sys/module/zram").exists()

    def zram_blacklisted(self) -> bool:
        d = self.ctx.path("/etc/modprobe.d")
        if not d.is_dir():
            return False
        return any(_BLACKLIST.search(f.read_text()) for f in sorted(d.glob("*.conf")) if f.is_file())

    def reasons(self) -> List[str]:
        """Why swap still needs deactivation; empty when fully off."""
        out = []
        devices = self.active_devices()
        if devices:
            out.append(f"active swap: {', '.join(devices)}")
        if self.zram_loaded() and not self.zram_blacklisted():
            out.append("zram module loaded and not blacklisted")
        return out
