# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/logging/log.py

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

# run logs kept per logger name; the appliance runs from an SD card
KEEP_RUNS = 20

FORMAT = "%(asctime)s | %(levelname)-7s | %(message)s"
DATEFMT = "%Y-%m-%d %H:%M:%S"


def default_log_dir() -> Path:
    return Path.home() / ".airplayer-appliance" / "logs"


def prune_logs(base_dir: Path, name: str, keep: int = KEEP_RUNS) -> list[Path]:
    """Delete all but the newest *keep* run logs (and their audit files)."""
    runs = sorted(base_dir.glob(f"{name}-*.log"), key=lambda p: p.name, reverse=True)
    removed = []
    for old in runs[keep:]:
        run_id = old.stem[len(name) + 1 + len("YYYYmmdd-HHMMSS") + 1:]
        for p in (old, base_dir / f"{run_id}.jsonl"):
            if p.exists():
                p.unlink()
                removed.append(p)
    return removed


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "appliance",
    verbose: bool = False,
    keep: int = KEEP_RUNS,
) -> tuple[logging.Logger, str, Path]:
    """
    One file per run holding the full trace (every command executed),
    plus a console handler at INFO, DEBUG with --debug.

    Returns (logger, run_id, log_path); observers reuse the run_id.
    """
    run_id = str(uuid.uuid4())
    base_dir = base_dir or default_log_dir()
    base_dir.mkdir(parents=True, exist_ok=True)
    prune_logs(base_dir, name, keep=max(keep - 1, 0))

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = base_dir / f"{name}-{ts}-{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(FORMAT, datefmt=DATEFMT)
    handlers = [
        (logging.FileHandler(log_path), logging.DEBUG),
        (logging.StreamHandler(), logging.DEBUG if verbose else logging.INFO),
    ]
    for handler, level in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.debug("=== appliance run %s started, trace in %s ===", run_id, log_path)
    return logger, run_id, log_path
