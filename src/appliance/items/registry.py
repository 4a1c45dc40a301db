# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from typing import List

from ..reconcile.applier import Item
from .autologin import AutologinItem
from .boot import BootItem
from .display_server import DisplayServerItem
from .hardening import HardeningItem
from .launch_script import LaunchScriptItem
from .network import NetworkItem
from .packages import PackagesItem
from .payload import PayloadItem
from .ssh import SshItem


def default_items() -> List[Item]:
    """Every item, in the order they are run when dependencies allow."""
    return [
        NetworkItem(),
        SshItem(),
        PackagesItem(),
        AutologinItem(),
        DisplayServerItem(),
        BootItem(),
        PayloadItem(),
        LaunchScriptItem(),
        HardeningItem(),
    ]
