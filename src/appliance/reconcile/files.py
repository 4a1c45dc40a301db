# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional


def write_atomic(
    path: Path,
    content: str,
    *,
    mode: Optional[int] = None,
    owner: Optional[str] = None,
) -> None:
    """
    Replace *path* with *content* in one rename.

    Existing permissions are kept unless *mode* is given.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if mode is None and path.exists():
        mode = path.stat().st_mode & 0o7777

    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp, mode if mode is not None else 0o644)
        if owner:
            chown(Path(tmp), owner)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def append_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a") as fh:
        fh.write(text)


def chown(path: Path, owner: str) -> None:
    """chown user:user, only when running as root."""
    if os.geteuid() != 0:
        return
    shutil.chown(path, user=owner, group=owner)


def ensure_symlink(link: Path, target: Path | str) -> bool:
    """Point *link* at *target*; returns False when it already does."""
    target = str(target)
    if link.is_symlink() and os.readlink(link) == target:
        return False
    link.parent.mkdir(parents=True, exist_ok=True)
    tmp = link.with_name(f".{link.name}.tmp")
    if tmp.is_symlink() or tmp.exists():
        tmp.unlink()
    os.symlink(target, tmp)
    os.replace(tmp, link)
    return True
