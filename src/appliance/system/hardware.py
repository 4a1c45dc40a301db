# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ..config.models import BootSettings
from ..utils.execution import RunContext

MODEL_PATH = "/proc/device-tree/model"
KMS_OVERLAY = "vc4-kms-v3d"


def detect_model(ctx: RunContext) -> str:
    p = ctx.path(MODEL_PATH)
    try:
        return p.read_bytes().rstrip(b"\x00").decode(errors="replace").strip()
    except FileNotFoundError:
        return ""


@dataclass(frozen=True)
class FixedAllocation:
    """Legacy firmware split: ``gpu_mem=<size>``."""

    size: int

    @property
    def key(self) -> str:
        return "gpu_mem"

    @property
    def line(self) -> str:
        return f"gpu_mem={self.size}"

    def matches(self, line: str) -> bool:
        return line.startswith("gpu_mem=")


@dataclass(frozen=True)
class DynamicPool:
    """KMS driver CMA pool: ``dtoverlay=vc4-kms-v3d,cma-<size>``."""

    size: int

    @property
    def key(self) -> str:
        return "dtoverlay"

    @property
    def line(self) -> str:
        return f"dtoverlay={KMS_OVERLAY},cma-{self.size}"

    def matches(self, line: str) -> bool:
        return line.startswith(f"dtoverlay={KMS_OVERLAY}")


BootMemoryScheme = Union[FixedAllocation, DynamicPool]


def select_scheme(boot: BootSettings, model: str) -> BootMemoryScheme:
    """Pick the memory scheme once per run; Pi 5 firmware ignores gpu_mem."""
    if boot.memory_scheme == "gpu_mem":
        return FixedAllocation(boot.gpu_memory)
    if boot.memory_scheme == "cma":
        return DynamicPool(boot.gpu_memory)
    if "Raspberry Pi 5" in model:
        return DynamicPool(boot.gpu_memory)
    return FixedAllocation(boot.gpu_memory)
