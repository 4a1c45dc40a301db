# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from ..reconcile.applier import Item
from ..reconcile.render import render
from .common import FileTarget, UnitsEnabledTarget

NETWORKD_UNITS = ("systemd-networkd.service", "systemd-networkd-wait-online.service")


class NetworkItem(Item):
    """Static address via systemd-networkd."""

    name = "network"
    value_key = "network_ip"
    stamp_key = "network_configured"

    def targets(self, settings, host, state):
        net = settings.network
        return [
            FileTarget(
                "network profile",
                host.path(f"/etc/systemd/network/10-{net.interface}.network"),
                render("network.j2", net=net),
                mode=0o644,
            ),
            UnitsEnabledTarget("systemd-networkd", host.services, NETWORKD_UNITS),
        ]

    def state_value(self, settings, host) -> str:
        return settings.network.address
