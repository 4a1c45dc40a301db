# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/config/models.py

from __future__ import annotations

import ipaddress
from pathlib import Path
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


DEFAULT_PACKAGES: Tuple[str, ...] = (
    "xserver-xorg-core", "xserver-xorg", "xinit", "x11-xserver-utils",
    "libzip5", "libgtk-3-0", "libfreeimage3", "libcurl4", "libusb-1.0-0",
    "libcanberra-gtk3-module", "libegl1", "libgles2",
    "openbox", "xterm", "unclutter", "ufw", "fail2ban",
)

DEFAULT_SERVICES_TO_DISABLE: Tuple[str, ...] = (
    "avahi-daemon", "cups", "triggerhappy", "ModemManager", "alsa-restore",
    "apt-daily.timer", "apt-daily-upgrade.timer", "keyboard-setup",
    "bluetooth", "systemd-timesyncd", "hciuart", "wpa_supplicant",
)

Rotation = Literal["normal", "left", "right", "inverted"]
Position = Literal["left-of", "right-of", "above", "below", "same-as"]


def _split_words(v):
    if isinstance(v, str):
        return tuple(w for w in v.replace(",", " ").split() if w)
    return v


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class NetworkSettings(_Frozen):
    interface: str = Field(min_length=1)
    address: str
    prefix: int = Field(ge=0, le=32)
    gateway: str
    dns: str

    @field_validator("address", "gateway")
    @classmethod
    def _ipv4(cls, v: str) -> str:
        ipaddress.IPv4Address(v)
        return v

    @property
    def cidr(self) -> str:
        return f"{self.address}/{self.prefix}"


class SshSettings(_Frozen):
    port: int = Field(ge=1, le=65535)
    allowed_user: str = Field(min_length=1)
    allowed_network: Optional[str] = None
    allow_agent_forwarding: bool = False
    allow_tcp_forwarding: bool = False

    @field_validator("allowed_network")
    @classmethod
    def _network(cls, v: Optional[str]) -> Optional[str]:
        if v:
            ipaddress.IPv4Network(v, strict=False)
        return v or None

    @property
    def allow_users(self) -> str:
        if self.allowed_network:
            return f"{self.allowed_user}@{self.allowed_network}"
        return self.allowed_user


class BootSettings(_Frozen):
    gpu_memory: int = Field(gt=0, le=1024)
    memory_scheme: Literal["auto", "gpu_mem", "cma"] = "auto"
    disable_wifi: bool = True
    disable_bluetooth: bool = True
    disable_ipv6: bool = True


class DisplayDescriptor(_Frozen):
    role: Literal["primary", "secondary", "tertiary"]
    output: str = Field(min_length=1)
    resolution: str = Field(pattern=r"^\d+x\d+$")
    rotation: Rotation = "normal"
    enabled: bool = True
    position: Optional[Position] = None
    # output identifier of the display this one is positioned against
    relative_to: Optional[str] = None


class DisplaySettings(_Frozen):
    count: int = Field(ge=1, le=3)
    displays: Tuple[DisplayDescriptor, ...]
    cursor_idle_time: int = Field(default=1, ge=0)
    kms_device: str = "/dev/dri/card1"

    @model_validator(mode="after")
    def _count_matches(self) -> "DisplaySettings":
        if len(self.displays) != self.count:
            raise ValueError(f"expected {self.count} display descriptors, got {len(self.displays)}")
        for d in self.displays[1:]:
            if d.enabled and (d.position is None or d.relative_to is None):
                raise ValueError(f"{d.role} display needs a position")
        return self

    @property
    def enabled(self) -> Tuple[DisplayDescriptor, ...]:
        return tuple(d for d in self.displays if d.enabled)


class PayloadSettings(_Frozen):
    archive: Path
    install_dir: Path
    udev_vendor_id: str = Field(default="16d0", pattern=r"^[0-9a-fA-F]{4}$")
    udev_product_id: str = Field(default="0e8a", pattern=r"^[0-9a-fA-F]{4}$")

    @field_validator("install_dir")
    @classmethod
    def _absolute(cls, v: Path) -> Path:
        if not v.is_absolute():
            raise ValueError("install directory must be an absolute path")
        return v


class FirewallSettings(_Frozen):
    allowed_network: str
    airmanager_ip: str
    port_http: int = Field(ge=1, le=65535)
    port_api: int = Field(ge=1, le=65535)
    port_airplayer: int = Field(ge=1, le=65535)

    @field_validator("allowed_network")
    @classmethod
    def _network(cls, v: str) -> str:
        ipaddress.IPv4Network(v, strict=False)
        return v

    @field_validator("airmanager_ip")
    @classmethod
    def _ip(cls, v: str) -> str:
        ipaddress.IPv4Address(v)
        return v


class HardeningSettings(_Frozen):
    services_to_disable: Tuple[str, ...] = DEFAULT_SERVICES_TO_DISABLE

    @field_validator("services_to_disable", mode="before")
    @classmethod
    def _services(cls, v):
        return _split_words(v)


class Settings(_Frozen):
    """Immutable desired state for one reconciliation run."""

    system_user: str = Field(min_length=1)
    system_user_home: Path
    network: NetworkSettings
    ssh: SshSettings
    packages: Tuple[str, ...] = DEFAULT_PACKAGES
    boot: BootSettings
    display: DisplaySettings
    payload: PayloadSettings
    firewall: FirewallSettings
    hardening: HardeningSettings = HardeningSettings()

    @field_validator("packages", mode="before")
    @classmethod
    def _packages(cls, v):
        v = _split_words(v)
        if not v:
            raise ValueError("package list must not be empty")
        return v

    @field_validator("system_user_home")
    @classmethod
    def _home(cls, v: Path) -> Path:
        if not v.is_absolute():
            raise ValueError("home directory must be an absolute path")
        return v
