# tests/test_parsing.py
import pytest

from ruleflow.automation.rules.parsing import parse_actions, parse_conditions
from ruleflow.automation.rules.types import ConditionLogic, RuleDefinitionError


def test_conditions_from_json_string():
    conds = parse_conditions('[{"field": "a", "operator": "equals", "value": 1, "logic": "or"}]')
    assert len(conds) == 1
    assert conds[0].field == "a"
    assert conds[0].logic is ConditionLogic.OR


@pytest.mark.parametrize("raw", [None, "", "  ", []])
def test_empty_conditions(raw):
    assert parse_conditions(raw) == []


def test_unknown_operator_is_kept_as_is():
    assert parse_conditions([{"field": "a", "operator": "weird"}])[0].operator == "weird"


@pytest.mark.parametrize(
    "raw, message",
    [
        ("{not json", "conditions: invalid JSON"),
        ({"field": "a"}, "conditions: must be an array"),
        (["x"], "conditions[0]: must be an object"),
        ([{"operator": "equals"}], "conditions[0].field"),
        ([{"field": "a", "logic": "XOR"}], "conditions[0].logic"),
    ],
)
def test_bad_conditions(raw, message):
    with pytest.raises(RuleDefinitionError, match=message.replace("[", r"\[").replace("]", r"\]")):
        parse_conditions(raw, strict=True)


@pytest.mark.parametrize(
    "logic, expected",
    [
        (None, ConditionLogic.AND),
        ("and", ConditionLogic.AND),
        ("or", ConditionLogic.OR),
        ("XOR", ConditionLogic.OR),
        (1, ConditionLogic.OR),
    ],
)
def test_lenient_logic(logic, expected):
    assert parse_conditions([{"field": "a", "logic": logic}])[0].logic is expected


def test_actions_sorted_by_order_stably():
    actions = parse_actions(
        [
            {"id": "late", "type": "log_event", "order": 2},
            {"id": "first", "type": "log_event", "order": 1},
            {"id": "second", "type": "log_event", "order": 1},
            {"type": "log_event"},
        ]
    )
    assert [a.id for a in actions] == ["a4", "first", "second", "late"]


@pytest.mark.parametrize(
    "raw, message",
    [
        ([{"config": {}}], r"actions\[0\]\.type"),
        ([{"type": "x", "config": ["oops"]}], r"actions\[0\]\.config"),
        ([{"type": "x", "order": "soon"}], r"actions\[0\]\.order"),
        ([{"type": "x", "order": True}], r"actions\[0\]\.order"),
        ([{"type": "x", "order": "1_000"}], r"actions\[0\]\.order"),
        ("[1,", "actions: invalid JSON"),
    ],
)
def test_bad_actions(raw, message):
    with pytest.raises(RuleDefinitionError, match=message):
        parse_actions(raw, strict=True)


def test_missing_type_is_left_to_the_executor():
    actions = parse_actions([{"id": "x", "config": {}}, {"id": "y", "type": "log_event"}])
    assert [(a.id, a.type) for a in actions] == [("x", ""), ("y", "log_event")]


def test_fractional_and_string_orders():
    actions = parse_actions(
        [
            {"id": "c", "type": "log_event", "order": 1.5},
            {"id": "b", "type": "log_event", "order": "1.2"},
            {"id": "a", "type": "log_event", "order": "-1"},
            {"id": "d", "type": "log_event", "order": 2},
        ]
    )
    assert [a.id for a in actions] == ["a", "b", "c", "d"]
    assert [a.order for a in actions] == [-1, 1.2, 1.5, 2]
