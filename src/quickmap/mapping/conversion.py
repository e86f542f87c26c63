"""Value conversion chain.

Registered converters are queried in registration order; the first whose
``can_convert(source_type, target_type)`` accepts the pair converts the
value. When none applies, coerce() attempts a generic best-effort coercion
between builtin scalar types. Anything coerce() cannot do, including
shape-to-shape conversion, raises ConversionFailure.

The fallback is deliberately strict. These inputs fail rather than guess:

- non-integral floats and decimals to ``int`` (no silent truncation)
- NaN and infinity to ``int``, ``float`` or ``Decimal``
- ints too large for a float
- integer literals longer than the interpreter's digit limit
- locale-formatted numbers such as ``"1,000"`` or ``"1,5"``
- non-ASCII digits
"""

from __future__ import annotations

import math
import re
import threading
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Optional, Protocol, Tuple, runtime_checkable
from uuid import UUID

from quickmap.core.exceptions import ConversionFailure
from quickmap.core.logger import get_logger

logger = get_logger(__name__)

_TRUE = frozenset({"true", "yes", "1", "on"})
_FALSE = frozenset({"false", "no", "0", "off"})
_INT_RE = re.compile(r"[+-]?[0-9]+\Z")
_FLOAT_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?\Z")


@runtime_checkable
class TypeConverter(Protocol):
    def can_convert(self, source_type: Any, target_type: Any) -> bool:
        ...

    def convert(self, value: Any, target_type: Any) -> Any:
        ...


@dataclass(frozen=True)
class FunctionConverter:
    """TypeConverter for one exact (source_type, target_type) pair backed by a function."""

    source_type: Any
    target_type: Any
    func: Callable[[Any], Any]

    def can_convert(self, source_type: Any, target_type: Any) -> bool:
        return source_type == self.source_type and target_type == self.target_type

    def convert(self, value: Any, target_type: Any) -> Any:
        return self.func(value)


def coerce(value: Any, target_type: Any, *, source_type: Any = None) -> Any:
    """Generic best-effort coercion of ``value`` to ``target_type``."""
    if source_type is None:
        source_type = type(value)

    def fail(reason: str) -> ConversionFailure:
        return ConversionFailure(source_type, target_type, value=value, reason=reason)

    if target_type is Any:
        return value
    if not isinstance(target_type, type):
        raise fail("no generic coercion for this target type")

    if target_type is str:
        if isinstance(value, str):
            return value
        if isinstance(value, Enum):
            return str(value.value)
        if isinstance(value, (bool, int, float, Decimal, UUID)):
            return str(value)
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        raise fail("value has no text form")

    if target_type is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        if isinstance(value, str):
            low = value.strip().lower()
            if low in _TRUE:
                return True
            if low in _FALSE:
                return False
        raise fail(f"{value!r} is not a boolean")

    if target_type is int:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            if not math.isfinite(value):
                raise fail("non-finite float")
            if not value.is_integer():
                raise fail(f"{value!r} is not integral")
            return int(value)
        if isinstance(value, Decimal):
            if not value.is_finite():
                raise fail("non-finite decimal")
            if value != value.to_integral_value():
                raise fail(f"{value} is not integral")
            return int(value)
        if isinstance(value, str):
            s = value.strip()
            if _INT_RE.match(s):
                try:
                    return int(s)
                except ValueError as exc:
                    raise fail("integer literal too long") from exc
            raise fail(f"{value!r} is not an integer literal")
        raise fail("unsupported source for int")

    if target_type is float:
        if isinstance(value, float):
            result = value
        elif isinstance(value, (int, Decimal)):
            try:
                result = float(value)
            except OverflowError as exc:
                raise fail("too large for a float") from exc
        elif isinstance(value, str):
            s = value.strip()
            if not _FLOAT_RE.match(s):
                raise fail(f"{value!r} is not a number literal")
            result = float(s)
        else:
            raise fail("unsupported source for float")
        if not math.isfinite(result):
            raise fail("result is not finite")
        return result

    if target_type is Decimal:
        if isinstance(value, (bool, int)):
            return Decimal(int(value))
        if isinstance(value, float):
            if not math.isfinite(value):
                raise fail("non-finite float")
            return Decimal(str(value))
        if isinstance(value, str):
            s = value.strip()
            if not _FLOAT_RE.match(s):
                raise fail(f"{value!r} is not a number literal")
            try:
                return Decimal(s)
            except InvalidOperation as exc:
                raise fail(f"{value!r} is not a decimal") from exc
        raise fail("unsupported source for Decimal")

    if target_type is datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError as exc:
                raise fail(f"{value!r} is not an ISO 8601 datetime") from exc
        raise fail("unsupported source for datetime")

    if target_type is date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value.strip())
            except ValueError as exc:
                raise fail(f"{value!r} is not an ISO 8601 date") from exc
        raise fail("unsupported source for date")

    if target_type is UUID:
        if isinstance(value, UUID):
            return value
        if isinstance(value, str):
            try:
                return UUID(value.strip())
            except ValueError as exc:
                raise fail(f"{value!r} is not a UUID") from exc
        raise fail("unsupported source for UUID")

    if issubclass(target_type, Enum):
        if isinstance(value, target_type):
            return value
        try:
            return target_type(value)
        except ValueError:
            pass
        if isinstance(value, str) and value in target_type.__members__:
            return target_type[value]
        raise fail(f"{value!r} is not a member of {target_type.__name__}")

    if target_type is complex and isinstance(value, (int, float)) and not isinstance(value, bool):
        return complex(value)

    if isinstance(value, target_type):
        return value

    raise fail("no converter registered and no generic coercion applies")


class ConversionChain:
    """Append-only, order-preserving list of TypeConverters plus the generic fallback.

    Registration swaps in a new tuple under a lock, so readers iterate a
    stable snapshot without locking. ``version`` increases with every
    registration; callers that cache resolved converters compare it.
    """

    def __init__(self) -> None:
        self._converters: Tuple[TypeConverter, ...] = ()
        self._lock = threading.Lock()
        self.version = 0

    def register(self, converter: TypeConverter) -> None:
        if not isinstance(converter, TypeConverter):
            raise TypeError(
                f"{converter!r} must implement can_convert(source_type, target_type) "
                "and convert(value, target_type)"
            )
        with self._lock:
            self._converters = self._converters + (converter,)
            self.version += 1
        logger.debug("Registered type converter %r (position %d)", converter, len(self._converters))

    @property
    def converters(self) -> Tuple[TypeConverter, ...]:
        return self._converters

    def find(self, source_type: Any, target_type: Any) -> Optional[TypeConverter]:
        for converter in self._converters:
            if converter.can_convert(source_type, target_type):
                return converter
        return None

    def resolve(self, source_type: Any, target_type: Any) -> Callable[[Any], Any]:
        """Converter function for a type pair, fixed at call time."""
        converter = self.find(source_type, target_type)
        if converter is not None:
            return lambda value: converter.convert(value, target_type)
        return lambda value: coerce(value, target_type, source_type=source_type)

    def convert(self, value: Any, source_type: Any, target_type: Any) -> Any:
        converter = self.find(source_type, target_type)
        if converter is not None:
            return converter.convert(value, target_type)
        return coerce(value, target_type, source_type=source_type)

    def __len__(self) -> int:
        return len(self._converters)
