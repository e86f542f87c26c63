from __future__ import annotations

import threading
from functools import partial
from typing import Any, Callable, Iterable, List, Optional

from quickmap.core.events import EventObserver, LoggingObserver, timed_stage
from quickmap.core.exceptions import (
    MissingTargetFieldError,
    NullCollectionError,
    NullSourceError,
    ShapeError,
    type_label,
)
from quickmap.core.logger import configure_root_logger, get_logger, push_pair, reset_pair
from quickmap.mapping.collection_mapper import CollectionMapper, is_scalar_type, sequence_target
from quickmap.mapping.compiled import CompiledMapperCache
from quickmap.mapping.conversion import ConversionChain, FunctionConverter, TypeConverter
from quickmap.mapping.custom_mappers import CustomMapperRegistry
from quickmap.mapping.interpreter import interpret_plan
from quickmap.mapping.plan_cache import PlanCache
from quickmap.mapping.resolver import MappingPlan
from quickmap.models.engine_config import EngineConfig
from quickmap.models.map_options import MapOptions
from quickmap.shapes.descriptor import Shape, ShapeCache

logger = get_logger(__name__)

Mapper = Callable[[Any], Any]


def _shape_name(tp: Any) -> str:
    if isinstance(tp, type):
        return tp.__qualname__
    return type_label(tp)


def _pair_label(source_cls: Any, target_shape: Any) -> str:
    return f"{_shape_name(source_cls)}->{_shape_name(target_shape)}"


def _identity(value: Any) -> Any:
    return value


class MappingEngine:
    """
    Object-to-object property mapper owning every cache and registry it uses.

    Construct one per application (or per test) and inject it where mapping
    is needed; nothing is shared between engines.

    Example:
        >>> engine = MappingEngine()
        >>> dto = engine.map(user, UserDto)
        >>> dtos = engine.map_many(users, UserDto, skip_nulls=True)
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        observers: Optional[List[EventObserver]] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Engine-wide defaults. If not provided, EngineConfig() is used.
            observers: Receivers of timing events when timing diagnostics are on.
                       Defaults to a LoggingObserver on the quickmap logger.
        """
        self.config = config or EngineConfig()
        if self.config.log_level:
            configure_root_logger(self.config.log_level)

        self.shapes = ShapeCache()
        self.plans = PlanCache(self.shapes)
        self.converters = ConversionChain()
        self.compiled = CompiledMapperCache(self.converters)
        self.custom_mappers = CustomMapperRegistry()
        self.collections = CollectionMapper()
        self.observers: List[EventObserver] = list(observers) if observers is not None else [LoggingObserver()]
        self.default_options = self.config.default_options()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_type_converter(self, converter: TypeConverter) -> None:
        """Append a converter to the conversion chain. There is no removal."""
        self.converters.register(converter)

    def type_converter(self, source_type: Any, target_type: Any) -> Callable[[Callable[[Any], Any]], Callable[[Any], Any]]:
        """Decorator registering a function as the converter for one type pair."""

        def decorator(func: Callable[[Any], Any]) -> Callable[[Any], Any]:
            self.register_type_converter(FunctionConverter(source_type, target_type, func))
            return func

        return decorator

    def register_custom_mapper(self, source_cls: Any, target_shape: Any, fn: Mapper) -> None:
        """Install or replace the total override for (source_cls, target_shape)."""
        self.custom_mappers.register(source_cls, target_shape, fn)

    def custom_mapper(self, source_cls: Any, target_shape: Any) -> Callable[[Mapper], Mapper]:
        def decorator(fn: Mapper) -> Mapper:
            self.register_custom_mapper(source_cls, target_shape, fn)
            return fn

        return decorator

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def shape_of(self, cls: type) -> Shape:
        return self.shapes.get(cls)

    def plan_for(self, source_cls: type, target_cls: type) -> MappingPlan:
        return self.plans.get(source_cls, target_cls)

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def map(self, source: Any, target_shape: Any, options: Optional[MapOptions] = None, **overrides: Any) -> Any:
        """
        Map ``source`` to a new instance of ``target_shape``.

        A custom mapper registered for (type(source), target_shape) replaces
        the whole pipeline. Sequence target types (``list[Dto]``,
        ``tuple[Dto, ...]``) are mapped element by element. Otherwise the
        cached plan for the pair is run, compiled or interpreted, and
        ``post_configure`` is called on the result.

        Args:
            source: Instance to read from.
            target_shape: Class (or sequence type) to produce.
            options: Per-call options; engine defaults when omitted.
            **overrides: MapOptions fields replacing those of ``options``.

        Raises:
            NullSourceError: If source is None
            ConversionFailure: If a field value cannot be converted
            MissingTargetFieldError: If ignore_missing_target is False and a
                                     source field has no target
            TargetConstructionError: If the target cannot be instantiated
        """
        opts = self._resolve_options(options, overrides)
        if source is None:
            raise NullSourceError(target_shape)

        custom = self.custom_mappers.try_get(type(source), target_shape)
        if custom is not None:
            return custom(source)

        token = push_pair(_pair_label(type(source), target_shape))
        try:
            if opts.timing_diagnostics:
                stage = "map.collection" if sequence_target(target_shape) is not None else "map.object"
                with timed_stage(self.observers, stage):
                    return self._map_and_configure(source, target_shape, opts)
            return self._map_and_configure(source, target_shape, opts)
        finally:
            reset_pair(token)

    def map_many(
        self,
        sources: Optional[Iterable[Any]],
        target_shape: Any,
        options: Optional[MapOptions] = None,
        **overrides: Any,
    ) -> List[Any]:
        """
        Map every element of ``sources`` to ``target_shape``.

        The element mapper is resolved once per distinct source class and
        reused across the batch. ``post_configure`` runs for each element.
        The batch is all-or-nothing: a failure on any element propagates and
        no partial list is returned.

        Raises:
            NullCollectionError: If sources is None
            NullSourceError: If an element is None
        """
        opts = self._resolve_options(options, overrides)
        if sources is None:
            raise NullCollectionError(target_shape)

        token = push_pair(f"*->{_shape_name(target_shape)}")
        try:
            if opts.timing_diagnostics:
                with timed_stage(self.observers, "map.batch") as stage:
                    results = self._map_batch(sources, target_shape, opts)
                    stage.counts = {"elements": len(results)}
                return results
            return self._map_batch(sources, target_shape, opts)
        finally:
            reset_pair(token)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _resolve_options(self, options: Optional[MapOptions], overrides: dict) -> MapOptions:
        base = options if options is not None else self.default_options
        return base.with_overrides(**overrides)

    def _map_and_configure(self, source: Any, target_shape: Any, opts: MapOptions) -> Any:
        if sequence_target(target_shape) is not None:
            target = self.collections.map(
                source,
                target_shape,
                partial(self._element_mapper, options=opts),
            )
        else:
            target = self._object_mapper(type(source), target_shape, opts)(source)
        if opts.post_configure is not None:
            opts.post_configure(target)
        return target

    def _map_batch(self, sources: Iterable[Any], target_shape: Any, opts: MapOptions) -> List[Any]:
        return self.collections.map(
            sources,
            List[target_shape],
            partial(self._element_mapper, options=opts),
            post_each=opts.post_configure,
        )

    def _object_mapper(self, source_cls: type, target_cls: Any, opts: MapOptions) -> Mapper:
        if not isinstance(target_cls, type):
            raise ShapeError(f"Cannot map to {type_label(target_cls)}: not a class or sequence type")
        plan = self.plans.get(source_cls, target_cls)
        if plan.unmatched and not opts.ignore_missing_target:
            raise MissingTargetFieldError(source_cls, target_cls, plan.unmatched)
        if opts.strategy == "compiled":
            return self.compiled.get(plan, skip_nulls=opts.skip_nulls)
        return partial(interpret_plan, plan, chain=self.converters, skip_nulls=opts.skip_nulls)

    def _element_mapper(self, source_cls: type, element_type: Any, *, options: MapOptions) -> Mapper:
        custom = self.custom_mappers.try_get(source_cls, element_type)
        if custom is not None:
            return custom
        if is_scalar_type(element_type):
            if element_type is Any or source_cls is element_type:
                return _identity
            return self.converters.resolve(source_cls, element_type)
        return self._object_mapper(source_cls, element_type, options)


_DEFAULT_ENGINE: Optional[MappingEngine] = None
_DEFAULT_ENGINE_LOCK = threading.Lock()


def get_default_engine() -> MappingEngine:
    """Lazily created engine for applications that do not construct their own.

    Configured from QUICKMAP_* environment variables on first use.
    """
    global _DEFAULT_ENGINE
    engine = _DEFAULT_ENGINE
    if engine is not None:
        return engine
    with _DEFAULT_ENGINE_LOCK:
        if _DEFAULT_ENGINE is None:
            _DEFAULT_ENGINE = MappingEngine(EngineConfig.from_env())
        return _DEFAULT_ENGINE


def set_default_engine(engine: Optional[MappingEngine]) -> None:
    global _DEFAULT_ENGINE
    with _DEFAULT_ENGINE_LOCK:
        _DEFAULT_ENGINE = engine
