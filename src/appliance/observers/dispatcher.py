# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/observers/dispatcher.py
from __future__ import annotations

import logging
from typing import List, Optional

from .events import BaseEvent, new_ctx

log = logging.getLogger("appliance")


class EventBus:
    def __init__(self, observers: List = None, *, run_id: Optional[str] = None, env: str = "local"):
        self._observers = observers or []
        self.run_id = run_id
        self.env = env

    def ctx(self, context: Optional[str] = None) -> dict:
        base = new_ctx(self.env, context)
        if self.run_id:
            base["run_id"] = self.run_id
        return base

    def emit(self, event: BaseEvent) -> None:
        for ob in self._observers:
            try:
                ob.notify(event)
            except Exception as e:
                # observers must not break a reconciliation run
                log.debug("observer %s failed: %s", type(ob).__name__, e)
