# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import stat
import zipfile
from pathlib import Path
from typing import List

from ..errors import PreconditionError

log = logging.getLogger("appliance")


class PayloadArchive:
    """The vendor zip. Extraction overlays; files already in place are kept."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def require(self) -> None:
        if not self.path.is_file():
            raise PreconditionError(f"payload archive not found: {self.path}")

    def sha256(self) -> str:
        h = hashlib.sha256()
        with self.path.open("rb") as fh:
            for chunk in iter(lambda: fh.read(1 << 20), b""):
                h.update(chunk)
        return h.hexdigest()

    def extract(self, dest: Path) -> List[str]:
        dest = Path(dest)
        dest.mkdir(parents=True, exist_ok=True)
        root = dest.resolve()
        written: List[str] = []
        with zipfile.ZipFile(self.path) as zf:
            for info in zf.infolist():
                target = (dest / info.filename).resolve()
                if root != target and root not in target.parents:
                    raise PreconditionError(f"archive member escapes install dir: {info.filename}")
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, open(target, "wb") as out:
                    shutil.copyfileobj(src, out)
                mode = (info.external_attr >> 16) & 0o777
                if mode:
                    os.chmod(target, mode)
                written.append(info.filename)
        log.debug("extracted %d members from %s into %s", len(written), self.path, dest)
        return written


def make_executable(paths) -> None:
    for p in paths:
        if p.is_file():
            p.chmod(p.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
