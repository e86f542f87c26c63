from __future__ import annotations

import collections.abc
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, get_args, get_origin
from uuid import UUID

from quickmap.core.exceptions import NullCollectionError, NullSourceError, type_label
from quickmap.core.logger import get_logger
from quickmap.shapes.descriptor import unwrap_annotation

logger = get_logger(__name__)

ElementMapper = Callable[[Any], Any]
ElementMapperFactory = Callable[[type, Any], ElementMapper]

_LIST_ORIGINS = frozenset(
    {
        list,
        collections.abc.Sequence,
        collections.abc.MutableSequence,
        collections.abc.Collection,
        collections.abc.Iterable,
    }
)

_SCALAR_TYPES: Tuple[type, ...] = (str, bytes, bool, int, float, complex, Decimal, date, datetime, UUID)


def sequence_target(target_shape: Any) -> Optional[Tuple[type, Any]]:
    """(container, element_type) when ``target_shape`` is a homogeneous sequence type.

    ``list[T]`` and the abstract sequence types map to ``list``;
    ``tuple[T, ...]`` is the fixed-size array form and maps to ``tuple``.
    Anything else, including bare ``list`` and fixed-arity tuples, is not a
    sequence target.
    """
    origin = get_origin(target_shape)
    if origin is None:
        return None
    args = get_args(target_shape)
    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return tuple, unwrap_annotation(args[0])[0]
        return None
    if origin in _LIST_ORIGINS and len(args) == 1:
        return list, unwrap_annotation(args[0])[0]
    return None


def is_scalar_type(tp: Any) -> bool:
    """True for element types mapped by value conversion instead of by plan."""
    if tp is Any or not isinstance(tp, type):
        return True
    return issubclass(tp, _SCALAR_TYPES) or issubclass(tp, Enum)


class CollectionMapper:
    """Maps a homogeneous source sequence into a list or tuple of target elements.

    ``element_mapper(source_cls, element_type)`` builds the per-element
    mapping function. It is looked up from the first element's runtime class.
    Elements are not assumed to share that class: a mapper is resolved for
    each distinct runtime class met in the sequence and memoized for the
    rest of the call.
    """

    def map(
        self,
        sources: Optional[Iterable[Any]],
        target_shape: Any,
        element_mapper: ElementMapperFactory,
        *,
        post_each: Optional[Callable[[Any], Any]] = None,
    ) -> Any:
        spec = sequence_target(target_shape)
        if spec is None:
            raise TypeError(f"{type_label(target_shape)} is not a sequence type")
        if sources is None:
            raise NullCollectionError(target_shape)
        if isinstance(sources, (str, bytes)) or not isinstance(sources, collections.abc.Iterable):
            raise TypeError(f"Cannot map {type(sources).__name__} to {type_label(target_shape)}: source is not a collection")

        container, element_type = spec
        mappers: Dict[type, ElementMapper] = {}
        results: List[Any] = []
        for item in sources:
            if item is None:
                raise NullSourceError(element_type)
            cls = type(item)
            mapper = mappers.get(cls)
            if mapper is None:
                if mappers:
                    logger.debug(
                        "Element %d is a %s; resolving its own mapper to %s",
                        len(results),
                        cls.__qualname__,
                        type_label(element_type),
                    )
                mapper = mappers[cls] = element_mapper(cls, element_type)
            target = mapper(item)
            if post_each is not None:
                post_each(target)
            results.append(target)

        if container is tuple:
            return tuple(results)
        return results
