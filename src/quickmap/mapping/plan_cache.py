from __future__ import annotations

import threading
from typing import Callable, Dict, Optional, Tuple

from quickmap.core.logger import get_logger
from quickmap.mapping.resolver import MappingPlan, resolve_plan
from quickmap.shapes.descriptor import ShapeCache

logger = get_logger(__name__)

PairKey = Tuple[type, type]


class PlanCache:
    """Get-or-create cache of MappingPlan per (source_cls, target_cls).

    Reads of a populated entry take no lock. On a miss the plan is computed
    outside the lock and inserted with setdefault, so concurrent first-time
    callers may compute twice but all of them get the one plan that was kept.
    """

    def __init__(
        self,
        shapes: ShapeCache,
        resolver: Callable[..., MappingPlan] = resolve_plan,
    ) -> None:
        self._shapes = shapes
        self._resolver = resolver
        self._plans: Dict[PairKey, MappingPlan] = {}
        self._lock = threading.Lock()

    def get(self, source_cls: type, target_cls: type) -> MappingPlan:
        key = (source_cls, target_cls)
        plan = self._plans.get(key)
        if plan is not None:
            return plan

        computed = self._resolver(self._shapes.get(source_cls), self._shapes.get(target_cls))
        with self._lock:
            plan = self._plans.setdefault(key, computed)
        if plan is computed:
            logger.debug(
                "Resolved plan %s -> %s with %d field mappings",
                source_cls.__qualname__,
                target_cls.__qualname__,
                len(plan),
            )
        return plan

    def peek(self, source_cls: type, target_cls: type) -> Optional[MappingPlan]:
        return self._plans.get((source_cls, target_cls))

    def __len__(self) -> int:
        return len(self._plans)

    def __contains__(self, key: object) -> bool:
        return key in self._plans
