# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging

from .events import BaseEvent, ItemFailed


class LoggerObserver:
    def __init__(self, logger: logging.Logger | None = None):
        self.log = logger or logging.getLogger("appliance")

    def notify(self, event: BaseEvent) -> None:
        d = event.dict()
        payload = ", ".join(
            f"{k}={v}" for k, v in d.items() if k not in ("ts", "run_id", "env", "context")
        )
        level = logging.ERROR if isinstance(event, ItemFailed) else logging.DEBUG
        self.log.log(level, "%s [%s] %s", event.__class__.__name__, d["context"] or "-", payload)
