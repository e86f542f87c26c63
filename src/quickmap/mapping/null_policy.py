from __future__ import annotations

from enum import Enum
from typing import Any, Tuple

from quickmap.shapes.descriptor import Field


class NullAction(Enum):
    """What to do with a source value before it enters the conversion chain."""

    OMIT_FIELD = "omit_field"          # source field carries SkipIfNull
    OMIT_GLOBAL = "omit_global"        # caller asked to skip nulls
    USE_DEFAULT = "use_default"        # target field carries DefaultValue
    PROCEED = "proceed"


def evaluate_null_policy(
    value: Any,
    source_field: Field,
    target_field: Field,
    *,
    skip_nulls: bool,
) -> Tuple[NullAction, Any]:
    """Apply the null rules in precedence order and return (action, value).

    1. None and the source field is SkipIfNull: omit the write.
    2. None and the caller set skip_nulls: omit the write.
    3. None and the target field has a DefaultValue: write the default.
    4. Otherwise write the value, possibly None, after conversion.
    """
    if value is not None:
        return NullAction.PROCEED, value
    if source_field.skip_if_null:
        return NullAction.OMIT_FIELD, None
    if skip_nulls:
        return NullAction.OMIT_GLOBAL, None
    if target_field.default is not None:
        return NullAction.USE_DEFAULT, target_field.default.value
    return NullAction.PROCEED, None


def is_omitted(action: NullAction) -> bool:
    return action in (NullAction.OMIT_FIELD, NullAction.OMIT_GLOBAL)
