# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from collections import deque
from typing import Dict, List, Optional, Sequence, Set

from ..observers.dispatcher import EventBus
from ..observers.events import PlanComputed, PlanFailed
from .applier import Item


class UnknownDependencyError(ValueError):
    pass


class CyclicDependencyError(ValueError):
    pass


def _validate_dependencies(items: Sequence[Item]) -> None:
    names: Set[str] = {i.name for i in items}
    for i in items:
        for d in i.depends_on:
            if d not in names:
                raise UnknownDependencyError(
                    f"Item '{i.name}' depends on unknown item '{d}'"
                )


def plan(items: Sequence[Item], bus: Optional[EventBus] = None) -> List[Item]:
    """
    Stable topological sort of items based on 'depends_on'.

    Ties are broken by registration order, so the declared sequence is kept
    wherever dependencies allow it. Emits PlanComputed / PlanFailed if an
    EventBus is provided.
    """
    ctx = bus.ctx(None) if bus else {}
    try:
        _validate_dependencies(items)

        rank: Dict[str, int] = {i.name: n for n, i in enumerate(items)}
        by_name: Dict[str, Item] = {i.name: i for i in items}
        indeg: Dict[str, int] = {i.name: len(set(i.depends_on)) for i in items}
        graph: Dict[str, Set[str]] = {i.name: set(i.depends_on) for i in items}

        queue = deque(sorted((n for n, deg in indeg.items() if deg == 0), key=rank.get))
        order: List[Item] = []

        while queue:
            n = queue.popleft()
            order.append(by_name[n])
            for m, deps in graph.items():
                if n in deps:
                    indeg[m] -= 1
                    if indeg[m] == 0:
                        queue.append(m)
                        queue = deque(sorted(queue, key=rank.get))  # deterministic

        if len(order) != len(items):
            raise CyclicDependencyError("Cyclic dependency detected among items")

        if bus:
            bus.emit(PlanComputed(order=[i.name for i in order], **ctx))
        return order

    except Exception as e:
        if bus:
            bus.emit(PlanFailed(error=str(e), **ctx))
        raise
