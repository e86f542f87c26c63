from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from quickmap.core.exceptions import ConversionFailure
from quickmap.mapping.conversion import ConversionChain
from quickmap.mapping.null_policy import NullAction, evaluate_null_policy, is_omitted
from quickmap.mapping.resolver import FieldMapping, MappingPlan


def convert_field_value(
    value: Any,
    mapping: FieldMapping,
    convert: Optional[Callable[[Any], Any]],
) -> Any:
    """Run one field value through type conversion, then its custom converter.

    ``convert`` is None when source and target value types are equal. None
    is never handed to ``convert``: it passes through for a nullable target
    and fails for a non-nullable one.
    """
    source_field = mapping.source_field
    if convert is not None:
        if value is None:
            if not mapping.target_field.nullable:
                raise ConversionFailure(
                    source_field.value_type,
                    mapping.target_field.value_type,
                    field_name=source_field.name,
                    reason="None cannot be written to a non-nullable field",
                )
        else:
            try:
                value = convert(value)
            except ConversionFailure as exc:
                raise exc.for_field(source_field.name)
    if source_field.custom_converter is not None:
        value = source_field.custom_converter(value)
    return value


def interpret_plan(
    plan: MappingPlan,
    source: Any,
    chain: ConversionChain,
    *,
    skip_nulls: bool = False,
) -> Any:
    """Map ``source`` by walking the plan field by field.

    Annotations and the converter chain are consulted on every call; see
    compiled.compile_plan for the variant that resolves them once.
    """
    values: Dict[str, Any] = {}
    for mapping in plan.mappings:
        source_field = mapping.source_field
        target_field = mapping.target_field
        action, value = evaluate_null_policy(
            source_field.read(source),
            source_field,
            target_field,
            skip_nulls=skip_nulls,
        )
        if is_omitted(action):
            continue
        if action is NullAction.USE_DEFAULT:
            values[target_field.name] = value
            continue
        convert = (
            chain.resolve(source_field.value_type, target_field.value_type)
            if mapping.needs_conversion
            else None
        )
        values[target_field.name] = convert_field_value(value, mapping, convert)
    return plan.target.instantiate(values)
