"""Field descriptor resolution: which source field feeds which target field."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from quickmap.core.logger import get_logger
from quickmap.shapes.descriptor import Field, Shape

logger = get_logger(__name__)


@dataclass(frozen=True)
class FieldMapping:
    source_field: Field
    target_field: Field

    @property
    def needs_conversion(self) -> bool:
        return self.source_field.value_type != self.target_field.value_type

    @property
    def renamed(self) -> bool:
        return self.source_field.name != self.target_field.name


@dataclass(frozen=True)
class MappingPlan:
    """Ordered field correspondences for one (source, target) shape pair."""

    source: Shape
    target: Shape
    mappings: Tuple[FieldMapping, ...]
    unmatched: Tuple[str, ...] = ()

    def __iter__(self):
        return iter(self.mappings)

    def __len__(self) -> int:
        return len(self.mappings)

    @property
    def key(self) -> Tuple[type, type]:
        return (self.source.cls, self.target.cls)

    def target_names(self) -> List[str]:
        return [m.target_field.name for m in self.mappings]


def _match(source_field: Field, target: Shape) -> Field | None:
    same_name = target.field(source_field.name)
    if source_field.map_to is None:
        return same_name
    if same_name is not None and same_name.value_type == source_field.value_type:
        return same_name
    redirected = target.field(source_field.map_to)
    if redirected is not None:
        return redirected
    return same_name


def resolve_plan(source: Shape, target: Shape) -> MappingPlan:
    """Compute the MappingPlan for a shape pair. Pure and idempotent.

    Each source field is matched to the target field of the same name. A
    MapTo annotation on the source field redirects it when no same-named
    target field of the same value type exists. Target-side MapTo
    annotations are never consulted. Source fields that find no target are
    recorded in ``unmatched`` and left out of the plan.
    """
    mappings: List[FieldMapping] = []
    unmatched: List[str] = []
    for source_field in source.fields:
        target_field = _match(source_field, target)
        if target_field is None:
            unmatched.append(source_field.name)
            continue
        mappings.append(FieldMapping(source_field, target_field))

    if unmatched:
        logger.debug(
            "No target field on %s for %s fields %s",
            target.name,
            source.name,
            unmatched,
        )
    return MappingPlan(source=source, target=target, mappings=tuple(mappings), unmatched=tuple(unmatched))
