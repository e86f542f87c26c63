"""Compiled mappers: a MappingPlan specialized into a chain of pre-bound field steps.

Compiling a plan resolves, once per shape pair, everything the interpreter
looks up on every call: the attribute getter, the converter chosen for the
type pair, the custom converter and the null rules that apply. What remains
per call is a getter, at most one None check and the write.

A field with no null rule in play (no SkipIfNull, no skip_nulls and no
DefaultValue on the target) is copied without a None check. Type hints are
not enforced at runtime, so any field with a rule gets the check, whatever
its declared type.
"""

from __future__ import annotations

import threading
from operator import attrgetter
from typing import Any, Callable, Dict, Optional, Tuple

from quickmap.core.logger import get_logger
from quickmap.mapping.conversion import ConversionChain
from quickmap.mapping.interpreter import convert_field_value
from quickmap.mapping.resolver import FieldMapping, MappingPlan

logger = get_logger(__name__)

FieldStep = Callable[[Any, Dict[str, Any]], None]
CompiledKey = Tuple[type, type, bool]


def _value_transform(mapping: FieldMapping, chain: ConversionChain) -> Optional[Callable[[Any], Any]]:
    convert = None
    if mapping.needs_conversion:
        convert = chain.resolve(mapping.source_field.value_type, mapping.target_field.value_type)
    if convert is None and mapping.source_field.custom_converter is None:
        return None

    def transform(value: Any) -> Any:
        return convert_field_value(value, mapping, convert)

    return transform


def compile_field(mapping: FieldMapping, chain: ConversionChain, *, skip_nulls: bool) -> FieldStep:
    source_field = mapping.source_field
    target_field = mapping.target_field
    read = attrgetter(source_field.name)
    name = target_field.name
    transform = _value_transform(mapping, chain)

    guarded = source_field.skip_if_null or skip_nulls or target_field.default is not None
    if not guarded:
        if transform is None:
            def copy(source: Any, values: Dict[str, Any]) -> None:
                values[name] = read(source)
            return copy

        def copy_converted(source: Any, values: Dict[str, Any]) -> None:
            values[name] = transform(read(source))
        return copy_converted

    if source_field.skip_if_null or skip_nulls:
        def skip_null(source: Any, values: Dict[str, Any]) -> None:
            value = read(source)
            if value is None:
                return
            values[name] = value if transform is None else transform(value)
        return skip_null

    default = target_field.default.value

    def default_null(source: Any, values: Dict[str, Any]) -> None:
        value = read(source)
        if value is None:
            values[name] = default
            return
        values[name] = value if transform is None else transform(value)
    return default_null


class CompiledMapper:
    """Callable equivalent to interpret_plan() for one plan and null-skip setting."""

    __slots__ = ("plan", "skip_nulls", "version", "_steps", "_instantiate")

    def __init__(self, plan: MappingPlan, chain: ConversionChain, *, skip_nulls: bool) -> None:
        self.plan = plan
        self.skip_nulls = skip_nulls
        self.version = chain.version
        self._steps: Tuple[FieldStep, ...] = tuple(
            compile_field(m, chain, skip_nulls=skip_nulls) for m in plan.mappings
        )
        self._instantiate = plan.target.instantiate

    @property
    def steps(self) -> Tuple[FieldStep, ...]:
        return self._steps

    def __call__(self, source: Any) -> Any:
        values: Dict[str, Any] = {}
        for step in self._steps:
            step(source, values)
        return self._instantiate(values)

    def __repr__(self) -> str:
        return (
            f"CompiledMapper({self.plan.source.name} -> {self.plan.target.name}, "
            f"fields={len(self._steps)}, skip_nulls={self.skip_nulls})"
        )


def compile_plan(plan: MappingPlan, chain: ConversionChain, *, skip_nulls: bool = False) -> CompiledMapper:
    return CompiledMapper(plan, chain, skip_nulls=skip_nulls)


class CompiledMapperCache:
    """Compiled mappers per (source_cls, target_cls, skip_nulls).

    Same optimistic-insert discipline as PlanCache. A mapper compiled before
    a later converter registration is stale and gets rebuilt on next use.
    """

    def __init__(self, chain: ConversionChain) -> None:
        self._chain = chain
        self._mappers: Dict[CompiledKey, CompiledMapper] = {}
        self._lock = threading.Lock()

    def get(self, plan: MappingPlan, *, skip_nulls: bool = False) -> CompiledMapper:
        key = (plan.source.cls, plan.target.cls, skip_nulls)
        mapper = self._mappers.get(key)
        if mapper is not None and mapper.version == self._chain.version:
            return mapper

        compiled = compile_plan(plan, self._chain, skip_nulls=skip_nulls)
        with self._lock:
            current = self._mappers.get(key)
            if current is None or current.version != self._chain.version:
                self._mappers[key] = compiled
                current = compiled
        if current is compiled:
            logger.debug("Compiled %r", compiled)
        return current

    def __len__(self) -> int:
        return len(self._mappers)

    def __contains__(self, key: object) -> bool:
        return key in self._mappers
