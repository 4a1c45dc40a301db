# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from ..reconcile.applier import Item
from ..reconcile.render import render
from ..utils.shell import FailurePolicy
from .common import FileTarget, MarkerTarget

AUTOLOGIN_CONF = "/etc/systemd/system/getty@tty1.service.d/autologin.conf"
PROFILE_MARKER = "Start X automatically on tty1"


class AutologinItem(Item):
    """Console autologin on tty1 plus the profile hook that runs startx."""

    name = "autologin"
    depends_on = ("packages",)
    value_key = "autologin_user"
    stamp_key = "autologin_configured"

    def targets(self, settings, host, state):
        user = settings.system_user

        def reload():
            host.runner.run(["systemctl", "daemon-reload"], policy=FailurePolicy.IGNORABLE)

        return [
            FileTarget(
                "getty autologin unit",
                host.path(AUTOLOGIN_CONF),
                render("autologin.conf.j2", user=user),
                mode=0o644,
                after=reload,
            ),
            MarkerTarget(
                "profile startx hook",
                host.path(settings.system_user_home / ".profile"),
                PROFILE_MARKER,
                render("profile_hook.j2", marker=PROFILE_MARKER),
                owner=user,
            ),
        ]

    def state_value(self, settings, host) -> str:
        return settings.system_user
