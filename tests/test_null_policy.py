from dataclasses import dataclass
from typing import Annotated, Optional

from quickmap.mapping.null_policy import NullAction, evaluate_null_policy, is_omitted
from quickmap.shapes.annotations import DefaultValue, SkipIfNull
from quickmap.shapes.descriptor import describe


@dataclass
class Source:
    plain: Optional[str] = None
    skipped: Annotated[Optional[str], SkipIfNull()] = None
    count: int = 0
    flagged: Annotated[int, SkipIfNull()] = 0


@dataclass
class Target:
    plain: Annotated[str, DefaultValue("fallback")] = ""
    skipped: Annotated[str, DefaultValue("fallback")] = ""
    count: int = 0
    bare: str = ""


SOURCE = describe(Source)
TARGET = describe(Target)


def _evaluate(value, source_name, target_name, *, skip_nulls=False):
    return evaluate_null_policy(
        value,
        SOURCE.field(source_name),
        TARGET.field(target_name),
        skip_nulls=skip_nulls,
    )


def test_non_null_value_proceeds_unchanged():
    assert _evaluate("x", "skipped", "skipped", skip_nulls=True) == (NullAction.PROCEED, "x")


def test_skip_if_null_beats_global_skip_and_default():
    action, _ = _evaluate(None, "skipped", "skipped", skip_nulls=True)
    assert action is NullAction.OMIT_FIELD


def test_global_skip_beats_default():
    action, _ = _evaluate(None, "plain", "plain", skip_nulls=True)
    assert action is NullAction.OMIT_GLOBAL


def test_default_applies_without_skip_rules():
    assert _evaluate(None, "plain", "plain") == (NullAction.USE_DEFAULT, "fallback")


def test_null_proceeds_when_no_rule_matches():
    assert _evaluate(None, "plain", "bare") == (NullAction.PROCEED, None)


def test_value_typed_field_holding_none_is_still_evaluated():
    # type hints are not enforced, so an int field can hold None
    assert _evaluate(None, "count", "count", skip_nulls=True) == (NullAction.OMIT_GLOBAL, None)
    assert _evaluate(None, "count", "plain") == (NullAction.USE_DEFAULT, "fallback")
    assert _evaluate(None, "count", "count") == (NullAction.PROCEED, None)


def test_skip_if_null_on_value_typed_field():
    assert _evaluate(None, "flagged", "count")[0] is NullAction.OMIT_FIELD


def test_is_omitted_covers_both_skip_rules():
    assert is_omitted(NullAction.OMIT_FIELD)
    assert is_omitted(NullAction.OMIT_GLOBAL)
    assert not is_omitted(NullAction.USE_DEFAULT)
    assert not is_omitted(NullAction.PROCEED)
