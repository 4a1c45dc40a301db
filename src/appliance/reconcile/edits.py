# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

"""Pure text transforms for multi-key files. Each is idempotent."""

from __future__ import annotations

import re
from typing import Callable, Dict, List


def _lines(text: str | None) -> List[str]:
    return (text or "").splitlines()


def _join(lines: List[str]) -> str:
    return "\n".join(lines) + "\n" if lines else ""


def apply_directives(text: str | None, directives: Dict[str, str]) -> str:
    """
    Set ``key`` -> full replacement line.

    An active line for the key wins over a commented one; only the first
    match is rewritten and further active duplicates are dropped. Keys with
    no match are appended.
    """
    lines = _lines(text)
    for key, line in directives.items():
        active = re.compile(r"^\s*" + re.escape(key) + r"\s*(=|\s)")
        commented = re.compile(r"^\s*#\s*" + re.escape(key) + r"\s*(=|\s)")
        hits = [i for i, ln in enumerate(lines) if active.match(ln)]
        if hits:
            lines[hits[0]] = line
            for i in reversed(hits[1:]):
                del lines[i]
            continue
        for i, ln in enumerate(lines):
            if commented.match(ln):
                lines[i] = line
                break
        else:
            lines.append(line)
    return _join(lines)


def ensure_in_section(text: str | None, line: str, replaces: Callable[[str], bool], section: str = "all") -> str:
    """
    Make *line* the single active entry matched by *replaces*.

    An existing match is rewritten in place; otherwise the line goes at the
    end of the file under a ``[section]`` header (added when the file's last
    section is a different one).
    """
    lines = _lines(text)
    hits = [i for i, ln in enumerate(lines) if replaces(ln.strip())]
    if hits:
        lines[hits[0]] = line
        for i in reversed(hits[1:]):
            del lines[i]
        return _join(lines)

    last = None
    for ln in lines:
        s = ln.strip()
        if s.startswith("[") and s.endswith("]"):
            last = s[1:-1]
    if last is not None and last != section:
        lines.append(f"[{section}]")
    lines.append(line)
    return _join(lines)


def remove_lines(text: str | None, drop: Callable[[str], bool]) -> str:
    return _join([ln for ln in _lines(text) if not drop(ln.strip())])


def ensure_cmdline_token(text: str | None, token: str) -> str:
    """cmdline.txt is one line of space separated kernel arguments."""
    tokens = (text or "").split()
    if token not in tokens:
        tokens.append(token)
    return " ".join(tokens) + "\n"


_FSTAB_ROW = re.compile(r"^(\S+\s+\S+\s+)(ext4|vfat)(\s+)(\S+)(.*)$")


def add_noatime(text: str | None) -> str:
    """Add noatime to active ext4/vfat entries mounted with defaults."""
    out = []
    for ln in _lines(text):
        m = _FSTAB_ROW.match(ln)
        if m and not ln.lstrip().startswith("#"):
            opts = m.group(4).split(",")
            if "defaults" in opts and "noatime" not in opts:
                opts.insert(opts.index("defaults") + 1, "noatime")
                ln = f"{m.group(1)}{m.group(2)}{m.group(3)}{','.join(opts)}{m.group(5)}"
        out.append(ln)
    return _join(out)


def comment_swap_entries(text: str | None) -> str:
    out = []
    for ln in _lines(text):
        fields = ln.split()
        if fields and not fields[0].startswith("#") and len(fields) >= 3 and fields[2] == "swap":
            ln = "#" + ln
        out.append(ln)
    return _join(out)
