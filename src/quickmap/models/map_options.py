"""Per-call mapping options."""

from __future__ import annotations

from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict

MappingStrategy = Literal["compiled", "interpreted"]


class MapOptions(BaseModel):
    """Options for MappingEngine.map() and map_many().

    skip_nulls: omit the write for every None source value.
    ignore_missing_target: when False, source fields without a target
        counterpart raise MissingTargetFieldError instead of being dropped.
    post_configure: called with the mapped target before it is returned.
    timing_diagnostics: time the call and publish it to the engine's observers.
    strategy: run the cached compiled mapper or interpret the plan per call.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    skip_nulls: bool = False
    ignore_missing_target: bool = True
    post_configure: Optional[Callable[[Any], Any]] = None
    timing_diagnostics: bool = False
    strategy: MappingStrategy = "compiled"

    def with_overrides(self, **overrides: Any) -> "MapOptions":
        """Validated copy with the given fields replaced."""
        if not overrides:
            return self
        return type(self).model_validate({**dict(self), **overrides})
