# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property

from ..utils.execution import RunContext
from ..utils.shell import CommandRunner
from .firewall import Firewall
from .hardware import detect_model
from .packages import PackageManager
from .services import ServiceManager
from .swap import SwapProbe


@dataclass
class Host:
    """The live system as seen by the appliers: paths, commands, adapters."""

    ctx: RunContext
    runner: CommandRunner = field(default_factory=CommandRunner)

    def path(self, p):
        return self.ctx.path(p)

    @cached_property
    def services(self) -> ServiceManager:
        return ServiceManager(self.ctx, self.runner)

    @cached_property
    def packages(self) -> PackageManager:
        return PackageManager(self.ctx, self.runner)

    @cached_property
    def firewall(self) -> Firewall:
        return Firewall(self.ctx, self.runner)

    @cached_property
    def swap(self) -> SwapProbe:
        return SwapProbe(self.ctx)

    @cached_property
    def board_model(self) -> str:
        return detect_model(self.ctx)
