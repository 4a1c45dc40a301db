# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from ..reconcile.applier import Item
from ..reconcile.render import render
from .common import FileTarget

XORG_CONF = "/etc/X11/xorg.conf.d/10-vc4.conf"


class DisplayServerItem(Item):
    name = "display_server"
    depends_on = ("packages",)
    value_key = "x11_kms_device"
    stamp_key = "x11_configured"
    requires_reboot = False

    def targets(self, settings, host, state):
        d = settings.display
        return [
            FileTarget(
                ".xinitrc",
                host.path(settings.system_user_home / ".xinitrc"),
                render("xinitrc.j2", idle=d.cursor_idle_time),
                mode=0o755,
                owner=settings.system_user,
            ),
            FileTarget(
                "xorg device config",
                host.path(XORG_CONF),
                render("10-vc4.conf.j2", kms_device=d.kms_device),
                mode=0o644,
            ),
        ]

    def state_value(self, settings, host) -> str:
        return settings.display.kms_device
