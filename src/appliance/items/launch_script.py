# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from ..reconcile.applier import Item
from ..reconcile.render import render
from .common import FileTarget


class LaunchScriptItem(Item):
    """Openbox autostart: xrandr layout for the enabled displays, then the player."""

    name = "launch_script"
    depends_on = ("payload", "display_server")
    value_key = "num_displays"
    stamp_key = "display_config"
    requires_reboot = False

    def targets(self, settings, host, state):
        content = render(
            "autostart.j2",
            displays=settings.display.enabled,
            install_dir=settings.payload.install_dir,
        )
        return [
            FileTarget(
                "openbox autostart",
                host.path(settings.system_user_home / ".config" / "openbox" / "autostart"),
                content,
                mode=0o755,
                owner=settings.system_user,
            )
        ]

    def state_value(self, settings, host) -> str:
        return str(settings.display.count)
