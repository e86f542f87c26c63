from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Optional, Tuple

from quickmap.core.exceptions import type_label
from quickmap.core.logger import get_logger

logger = get_logger(__name__)

CustomMapperKey = Tuple[Any, Any]
CustomMapperFn = Callable[[Any], Any]


class CustomMapperRegistry:
    """Total per-pair overrides that bypass the generic mapping pipeline.

    Keyed by (source class, target shape); the target may be a class or a
    collection type such as ``list[Dto]``. The last registration for a pair
    wins. Writes are serialized by a dedicated lock; lookups take none.
    """

    def __init__(self) -> None:
        self._registry: Dict[CustomMapperKey, CustomMapperFn] = {}
        self._lock = threading.Lock()

    def register(self, source_cls: Any, target_shape: Any, fn: CustomMapperFn) -> None:
        if not callable(fn):
            raise TypeError(f"Custom mapper for {type_label(source_cls)} -> {type_label(target_shape)} must be callable")
        key = (source_cls, target_shape)
        with self._lock:
            replaced = key in self._registry
            self._registry[key] = fn
        if replaced:
            logger.debug(
                "Replaced custom mapper for %s -> %s",
                type_label(source_cls),
                type_label(target_shape),
            )
        else:
            logger.debug(
                "Registered custom mapper for %s -> %s",
                type_label(source_cls),
                type_label(target_shape),
            )

    def try_get(self, source_cls: Any, target_shape: Any) -> Optional[CustomMapperFn]:
        try:
            return self._registry.get((source_cls, target_shape))
        except TypeError:
            # Unhashable target shape; nothing can be registered for it
            return None

    def __len__(self) -> int:
        return len(self._registry)

    def __contains__(self, key: object) -> bool:
        return key in self._registry
