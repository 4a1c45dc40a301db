# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/observers/jsonfile.py
from __future__ import annotations

import json
import os
from pathlib import Path

from .events import BaseEvent
from .interface import Observer


class JsonFileObserver(Observer):
    """
    Append-only JSONL audit trail, one numbered record per event.

    Each record is synced to disk as it is written; a run usually ends in a
    reboot.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.seq = 0

    def notify(self, event: BaseEvent) -> None:
        self.seq += 1
        record = {"seq": self.seq, "type": type(event).__name__, **event.dict()}
        line = json.dumps(record, default=str, ensure_ascii=False)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
            f.flush()
            os.fsync(f.fileno())
