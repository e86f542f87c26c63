"""Shape descriptors: the engine's pre-built view of a mappable class.

A Shape is derived once per class from its type hints and then reused for
every mapping call. It lists the class's fields in declaration order, knows
which annotations each field carries, and knows how to build an instance of
the class from a dict of field values.

Three kinds of classes can be described:

- dataclasses (constructed with keyword arguments)
- pydantic ``BaseModel`` subclasses (constructed with keyword arguments, so
  the model's own validation runs)
- plain classes declaring annotated attributes (constructed with no
  arguments, then populated with ``setattr``)
"""

from __future__ import annotations

import dataclasses
import threading
import types
from dataclasses import dataclass
from decimal import Decimal
from typing import (
    Annotated,
    Any,
    Callable,
    ClassVar,
    Dict,
    Literal,
    Mapping,
    Optional,
    Tuple,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from pydantic import BaseModel, ValidationError

from quickmap.core.exceptions import ShapeError, TargetConstructionError
from quickmap.core.logger import get_logger
from quickmap.shapes.annotations import CustomConverter, DefaultValue, MapTo, SkipIfNull

logger = get_logger(__name__)

ShapeKind = Literal["dataclass", "pydantic", "plain"]

# Non-Optional fields of these types are non-nullable conversion targets.
VALUE_TYPES: Tuple[type, ...] = (int, float, bool, complex)

_ZERO_VALUES: Dict[Any, Callable[[], Any]] = {
    int: int,
    float: float,
    bool: bool,
    complex: complex,
    str: str,
    bytes: bytes,
    Decimal: Decimal,
    list: list,
    dict: dict,
    set: set,
    frozenset: frozenset,
    tuple: tuple,
}

_MISSING = object()


def unwrap_annotation(annotation: Any) -> Tuple[Any, bool, Tuple[Any, ...]]:
    """Strip Annotated and Optional layers.

    Returns ``(value_type, optional, metadata)`` where ``optional`` is true
    when the annotation admits None and ``metadata`` collects every
    Annotated extra found on the way down.
    """
    metadata: Tuple[Any, ...] = ()
    optional = False
    tp = annotation
    while True:
        origin = get_origin(tp)
        if origin is Annotated:
            args = get_args(tp)
            tp = args[0]
            metadata += tuple(args[1:])
            continue
        if origin is Union or (hasattr(types, "UnionType") and isinstance(tp, types.UnionType)):
            args = get_args(tp)
            members = tuple(a for a in args if a is not type(None))
            if len(members) != len(args):
                optional = True
            if len(members) == 1:
                tp = members[0]
                continue
            tp = Union[members]  # type: ignore[valid-type]
        break
    if tp is Any or tp is None or tp is type(None):
        optional = True
    return tp, optional, metadata


def zero_value(value_type: Any, optional: bool) -> Any:
    """Zero value of a type, as left in a target field that was never written."""
    if optional:
        return None
    base = get_origin(value_type) or value_type
    factory = _ZERO_VALUES.get(base)
    if factory is not None:
        return factory()
    return None


@dataclass(frozen=True)
class Field:
    """A named, typed slot of a shape."""

    name: str
    annotation: Any
    value_type: Any
    nullable: bool
    has_default: bool
    optional: bool = False
    init: bool = True
    map_to: Optional[str] = None
    skip_if_null: bool = False
    default: Optional[DefaultValue] = None
    custom_converter: Optional[Callable[[Any], Any]] = None

    def read(self, instance: Any) -> Any:
        return getattr(instance, self.name)

    def zero(self) -> Any:
        return zero_value(self.value_type, self.optional)

    def __repr__(self) -> str:
        return f"Field({self.name!r}, {self.value_type!r})"


def _build_field(name: str, annotation: Any, *, has_default: bool, init: bool = True) -> Field:
    value_type, optional, metadata = unwrap_annotation(annotation)
    nullable = optional or not (isinstance(value_type, type) and issubclass(value_type, VALUE_TYPES))

    map_to: Optional[str] = None
    skip_if_null = False
    default: Optional[DefaultValue] = None
    custom_converter: Optional[Callable[[Any], Any]] = None
    for meta in metadata:
        if isinstance(meta, MapTo):
            map_to = meta.target_name
        elif isinstance(meta, SkipIfNull):
            skip_if_null = True
        elif isinstance(meta, DefaultValue):
            default = meta
        elif isinstance(meta, CustomConverter):
            custom_converter = meta.build()

    return Field(
        name=name,
        annotation=annotation,
        value_type=value_type,
        nullable=nullable,
        has_default=has_default,
        optional=optional,
        init=init,
        map_to=map_to,
        skip_if_null=skip_if_null,
        default=default,
        custom_converter=custom_converter,
    )


class Shape:
    """Structural descriptor of one class. Built by describe(); never mutated."""

    __slots__ = ("cls", "kind", "fields", "by_name")

    def __init__(self, cls: type, kind: ShapeKind, fields: Tuple[Field, ...]):
        self.cls = cls
        self.kind = kind
        self.fields = fields
        self.by_name: Mapping[str, Field] = types.MappingProxyType({f.name: f for f in fields})

    @property
    def name(self) -> str:
        return self.cls.__qualname__

    def field(self, name: str) -> Optional[Field]:
        return self.by_name.get(name)

    def instantiate(self, values: Mapping[str, Any]) -> Any:
        """Build an instance from ``values``; unwritten fields keep their zero value."""
        try:
            if self.kind == "plain":
                instance = self.cls()
                for f in self.fields:
                    value = values.get(f.name, _MISSING)
                    if value is _MISSING:
                        if hasattr(instance, f.name):
                            continue
                        value = f.zero()
                    setattr(instance, f.name, value)
                return instance

            kwargs: Dict[str, Any] = {}
            late: Dict[str, Any] = {}
            for f in self.fields:
                value = values.get(f.name, _MISSING)
                if value is _MISSING:
                    if f.has_default:
                        continue
                    value = f.zero()
                if f.init:
                    kwargs[f.name] = value
                else:
                    late[f.name] = value
            instance = self.cls(**kwargs)
            for name, value in late.items():
                object.__setattr__(instance, name, value)
            return instance
        except (TypeError, ValueError, ValidationError, AttributeError) as exc:
            raise TargetConstructionError(self.cls, f"{type(exc).__name__}: {exc}") from exc

    def __repr__(self) -> str:
        return f"Shape({self.name}, fields={[f.name for f in self.fields]})"


def _type_hints(cls: type) -> Dict[str, Any]:
    try:
        return get_type_hints(cls, include_extras=True)
    except Exception as exc:
        raise ShapeError(f"Cannot resolve type hints of {cls!r}: {exc}") from exc


def describe(cls: Any) -> Shape:
    """Build the Shape of ``cls``. Pure; callers cache the result."""
    if not isinstance(cls, type):
        raise ShapeError(f"Only classes can be described as shapes, got {cls!r}")

    if issubclass(cls, BaseModel):
        # pydantic keeps Annotated extras on FieldInfo.metadata
        fields = tuple(
            _build_field(
                name,
                Annotated[(info.annotation, *info.metadata)] if info.metadata else info.annotation,
                has_default=not info.is_required(),
            )
            for name, info in cls.model_fields.items()
        )
        return Shape(cls, "pydantic", fields)

    hints = _type_hints(cls)

    if dataclasses.is_dataclass(cls):
        fields = tuple(
            _build_field(
                f.name,
                hints.get(f.name, f.type),
                has_default=(
                    f.default is not dataclasses.MISSING
                    or f.default_factory is not dataclasses.MISSING  # type: ignore[misc]
                ),
                init=f.init,
            )
            for f in dataclasses.fields(cls)
        )
        return Shape(cls, "dataclass", fields)

    plain = []
    for name, annotation in hints.items():
        if name.startswith("_") or get_origin(annotation) is ClassVar:
            continue
        plain.append(_build_field(name, annotation, has_default=hasattr(cls, name)))
    if not plain:
        raise ShapeError(
            f"{cls.__qualname__} declares no annotated fields; "
            "use a dataclass, a pydantic model or annotate its attributes"
        )
    return Shape(cls, "plain", tuple(plain))


class ShapeCache:
    """Process-lifetime cache of Shape per class with optimistic insert."""

    def __init__(self) -> None:
        self._shapes: Dict[type, Shape] = {}
        self._lock = threading.Lock()

    def get(self, cls: type) -> Shape:
        shape = self._shapes.get(cls)
        if shape is not None:
            return shape
        computed = describe(cls)
        with self._lock:
            shape = self._shapes.setdefault(cls, computed)
        if shape is computed:
            logger.debug("Described shape %s with %d fields", shape.name, len(shape.fields))
        return shape

    def __len__(self) -> int:
        return len(self._shapes)

    def __contains__(self, cls: object) -> bool:
        return cls in self._shapes
