"""
Custom exception classes for the quickmap engine.

Every error the engine raises derives from QuickMapException. Errors raised
by user code (custom converters, custom mappers, post-configure callbacks)
are never wrapped and propagate as-is.
"""

from typing import Any, Iterable, Optional


def type_label(tp: Any) -> str:
    """Readable name for a type or typing construct, used in error messages."""
    if isinstance(tp, type):
        if tp.__module__ == "builtins":
            return tp.__qualname__
        return f"{tp.__module__}.{tp.__qualname__}"
    return repr(tp)


class QuickMapException(Exception):
    """Base exception class for all quickmap exceptions."""

    pass


class NullSourceError(QuickMapException, ValueError):
    """Raised when map() is called without a source instance."""

    def __init__(self, target_shape: Any = None):
        self.target_shape = target_shape
        message = "Source object cannot be None"
        if target_shape is not None:
            message += f" (target={type_label(target_shape)})"
        super().__init__(message)


class NullCollectionError(QuickMapException, ValueError):
    """Raised when collection mapping is called without a source sequence."""

    def __init__(self, target_shape: Any = None):
        self.target_shape = target_shape
        message = "Source collection cannot be None"
        if target_shape is not None:
            message += f" (target={type_label(target_shape)})"
        super().__init__(message)


class ConversionFailure(QuickMapException, TypeError):
    """
    Raised when a value cannot be converted between two field types.

    Raised when no registered converter applies and the generic fallback
    coercion cannot produce a value of the target type. Carries both type
    identifiers so the failing pair can be diagnosed.

    Example:
        >>> raise ConversionFailure(str, int, value="12abc", field_name="age")
    """

    def __init__(
        self,
        source_type: Any,
        target_type: Any,
        *,
        value: Any = None,
        field_name: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        self.source_type = source_type
        self.target_type = target_type
        self.value = value
        self.field_name = field_name
        self.reason = reason
        message = f"Cannot convert from {type_label(source_type)} to {type_label(target_type)}"
        if field_name:
            message += f" for field {field_name!r}"
        if reason:
            message += f": {reason}"
        super().__init__(message)

    def for_field(self, field_name: str) -> "ConversionFailure":
        """Copy of this failure annotated with the field being mapped."""
        if self.field_name == field_name:
            return self
        return ConversionFailure(
            self.source_type,
            self.target_type,
            value=self.value,
            field_name=field_name,
            reason=self.reason,
        )


class TargetConstructionError(QuickMapException):
    """Raised when the target shape cannot be instantiated. Not recoverable."""

    def __init__(self, target_shape: Any, reason: str):
        self.target_shape = target_shape
        self.reason = reason
        super().__init__(f"Cannot construct {type_label(target_shape)}: {reason}")


class MissingTargetFieldError(QuickMapException):
    """Raised when source fields have no target counterpart and the caller asked to surface it."""

    def __init__(self, source_shape: Any, target_shape: Any, field_names: Iterable[str]):
        self.source_shape = source_shape
        self.target_shape = target_shape
        self.field_names = tuple(field_names)
        super().__init__(
            f"No target field on {type_label(target_shape)} for "
            f"{type_label(source_shape)} fields: {list(self.field_names)}"
        )


class ShapeError(QuickMapException):
    """Raised when a class cannot be described as a shape."""

    pass
