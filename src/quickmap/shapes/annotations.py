"""Field annotations understood by the mapping engine.

Annotations are attached with ``typing.Annotated``::

    @dataclass
    class UserDto:
        id: int
        email: Annotated[Optional[str], SkipIfNull()] = None
        user_name: Annotated[str, MapTo("name")] = ""

MapTo, SkipIfNull and CustomConverter are read from the source side;
DefaultValue is read from the target side.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol, runtime_checkable


@runtime_checkable
class PropertyConverter(Protocol):
    """Per-field converter applied after type conversion."""

    def convert(self, value: Any) -> Any:
        ...


@dataclass(frozen=True)
class MapTo:
    """Redirects a source field into the target field called ``target_name``."""

    target_name: str

    def __post_init__(self) -> None:
        if not self.target_name or not isinstance(self.target_name, str):
            raise ValueError("MapTo requires a non-empty target field name")


@dataclass(frozen=True)
class SkipIfNull:
    """Omit the target write when the source value is None."""


@dataclass(frozen=True)
class DefaultValue:
    """Value written into the target field when the source value is None."""

    value: Any


@dataclass(frozen=True)
class CustomConverter:
    """Post-processes the mapped value of a source field.

    ``converter`` is either a callable taking the value, an object with a
    ``convert(value)`` method, or a class whose instances have one. Classes
    are instantiated once, when the shape is described.
    """

    converter: Any

    def __post_init__(self) -> None:
        target = self.converter
        if isinstance(target, type):
            if not callable(getattr(target, "convert", None)):
                raise TypeError("Converter type must define convert(value)")
        elif not (callable(target) or isinstance(target, PropertyConverter)):
            raise TypeError("CustomConverter requires a callable or an object with convert(value)")

    def build(self) -> Callable[[Any], Any]:
        target = self.converter
        if isinstance(target, type):
            return target().convert
        if isinstance(target, PropertyConverter):
            return target.convert
        return target
