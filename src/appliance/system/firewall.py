# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/system/firewall.py
from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple

from ..reconcile.detect import read_current, read_key
from ..utils.execution import RunContext
from ..utils.shell import CommandResult, CommandRunner

ANY = "0.0.0.0/0"

UFW_CONF = "/etc/ufw/ufw.conf"
UFW_DEFAULTS = "/etc/default/ufw"
USER_RULES = "/etc/ufw/user.rules"


def _net(value: str) -> str:
    if value in ("any", ANY):
        return ANY
    net = ipaddress.ip_network(value, strict=False)
    # ufw stores single hosts without a prefix
    if net.prefixlen == net.max_prefixlen:
        return str(net.network_address)
    return str(net)


@dataclass(frozen=True)
class Rule:
    """
    One ufw allow rule, in the field order of ufw's ``### tuple ###`` lines:
    action proto dport dst sport src direction.
    """

    proto: str
    port: str = "any"
    src: str = ANY
    direction: str = "in"
    action: str = "allow"
    dst: str = ANY
    sport: str = "any"

    @classmethod
    def inbound(cls, proto: str, src: str, port: Optional[int] = None) -> "Rule":
        return cls(proto=proto, port=str(port) if port else "any", src=_net(src))

    @classmethod
    def outbound(cls, proto: str, port: int) -> "Rule":
        return cls(proto=proto, port=str(port), direction="out")

    @classmethod
    def parse(cls, line: str) -> Optional["Rule"]:
        if not line.startswith("### tuple ###"):
            return None
        tok = line[len("### tuple ###"):].split()
        if len(tok) < 7:
            return None
        action, proto, dport, dst, sport, src, direction = tok[:7]
        return cls(proto=proto, port=dport, src=src, direction=direction, action=action, dst=dst, sport=sport)

    def argv(self) -> List[str]:
        if self.direction == "out":
            argv = ["ufw", self.action, "out", "to", "any"]
        else:
            src = "any" if self.src == ANY else self.src
            argv = ["ufw", self.action, "from", src, "to", "any"]
        if self.port != "any":
            argv += ["port", self.port]
        return argv + ["proto", self.proto]

    def __str__(self) -> str:
        where = f"from {self.src}" if self.direction == "in" else "out"
        return f"{self.action} {where} port {self.port}/{self.proto}"


class Firewall:
    """ufw capability; state is read from ufw's own files."""

    def __init__(self, ctx: RunContext, runner: CommandRunner):
        self.ctx = ctx
        self.runner = runner

    @property
    def conf_path(self):
        return self.ctx.path(UFW_CONF)

    @property
    def defaults_path(self):
        return self.ctx.path(UFW_DEFAULTS)

    def enabled(self) -> bool:
        return (read_key(read_current(self.conf_path), "ENABLED") or "").lower() == "yes"

    def ipv6(self) -> Optional[str]:
        return read_key(read_current(self.defaults_path), "IPV6")

    def defaults(self) -> Tuple[Optional[str], Optional[str]]:
        text = read_current(self.defaults_path)
        strip = lambda v: v.strip('"') if v else v  # noqa: E731
        return (
            strip(read_key(text, "DEFAULT_INPUT_POLICY")),
            strip(read_key(text, "DEFAULT_OUTPUT_POLICY")),
        )

    def rules(self) -> Set[Rule]:
        text = read_current(self.ctx.path(USER_RULES)) or ""
        return {r for r in map(Rule.parse, text.splitlines()) if r is not None}

    def set_default(self, policy: str, direction: str) -> CommandResult:
        return self.runner.run(["ufw", "--force", "default", policy, direction])

    def allow(self, rule: Rule) -> CommandResult:
        return self.runner.run(rule.argv())

    def enable(self) -> CommandResult:
        return self.runner.run(["ufw", "--force", "enable"])

    def status(self) -> str:
        return self.runner.probe(["ufw", "status", "verbose"]).stdout
