# tests/test_evaluator.py
import math

import pytest

from ruleflow.automation.rules.evaluator import ConditionEvaluator, fold_results, loose_equals, to_number
from ruleflow.automation.rules.types import Condition, ConditionLogic

AND, OR = ConditionLogic.AND, ConditionLogic.OR


@pytest.mark.parametrize(
    "value, op, target, expected",
    [
        ("active", "equals", "active", True),
        ("10", "equals", 10, True),
        (None, "equals", None, True),
        (None, "equals", "", False),
        ("a", "not_equals", "b", True),
        ("Hello World", "contains", "world", True),
        ("Hello", "not_contains", "xyz", True),
        ("Hello", "starts_with", "he", True),
        ("Hello", "ends_with", "LO", True),
        (150, "greater_than", "100", True),
        ("5", "less_than", 10, True),
        (10, "greater_or_equal", 10, True),
        (10, "less_or_equal", 9, False),
        ("", "is_empty", None, True),
        (None, "is_empty", None, True),
        (0, "is_empty", None, False),
        ("x", "is_empty", None, False),
        ("x", "is_not_empty", None, True),
        (None, "is_null", None, True),
        ("", "is_not_null", None, True),
        ("b", "in_list", ["a", "b"], True),
        ("b", "in", ["a", "b"], True),
        ("c", "not_in_list", ["a", "b"], True),
        ("b", "in_list", "not-a-list", False),
        (True, "in_list", [1], False),
        (0, "in_list", [False], False),
        ("1", "in_list", [1], False),
        (1, "in_list", [1.0], True),
        (None, "in_list", [None], True),
        (True, "not_in_list", [1], True),
        (False, "in", [False], True),
        ("ORD-123", "matches_regex", r"^ORD-\d+$", True),
        ("abc", "matches_regex", "([", False),
        (5, "between", [1, 10], True),
        (11, "between", [1, 10], False),
        (5, "between", 7, False),
        (10, "between", [10, 20], True),
        (20, "between", [10, 20], True),
        (21, "between", [10, 20], False),
        (9, "between", [10, 20], False),
        ("15", "between", ["10", "20"], True),
        ("1_000", "greater_than", 1, False),
        ("inf", "greater_than", 1, False),
    ],
)
def test_operators(value, op, target, expected):
    assert ConditionEvaluator.evaluate_single(value, op, target) is expected


def test_unknown_operator_is_false(caplog):
    with caplog.at_level("WARNING", logger="automation"):
        assert ConditionEvaluator.evaluate_single(1, "roughly_equals", 1) is False
    assert "Unknown operator: roughly_equals" in caplog.text


def test_missing_field_fails_numeric_comparisons():
    ev = ConditionEvaluator()
    cond = Condition(field="deal.amount", operator="greater_than", value=0)
    assert ev.evaluate([cond], {}) is False
    cond_lt = Condition(field="deal.amount", operator="less_than", value=0)
    assert ev.evaluate([cond_lt], {}) is False


def test_number_coercion():
    assert to_number("  ") == 0
    assert to_number(True) == 1
    assert to_number("3.5") == 3.5
    assert to_number("abc") != to_number("abc")  # NaN
    assert loose_equals("true", True) is False


@pytest.mark.parametrize("raw", ["1_000", "inf", "-Infinity", "nan", "1e", "12abc", "0x10"])
def test_non_decimal_strings_are_nan(raw):
    assert math.isnan(to_number(raw))


@pytest.mark.parametrize("raw, expected", [(" 12 ", 12.0), ("-3", -3.0), (".5", 0.5), ("1e3", 1000.0), ("+2.", 2.0)])
def test_decimal_strings(raw, expected):
    assert to_number(raw) == expected


def test_empty_conditions_are_true():
    assert ConditionEvaluator().evaluate([], {"a": 1}) is True


def test_left_fold_without_precedence():
    data = {"a": 1, "b": 0, "c": 0}
    ev = ConditionEvaluator()
    conds = [
        Condition(field="a", operator="equals", value=1, logic=OR),
        Condition(field="b", operator="equals", value=1, logic=AND),
        Condition(field="c", operator="equals", value=1),
    ]
    # (A OR B) AND C → False; при приоритете AND было бы A OR (B AND C) → True
    assert ev.evaluate(conds, data) is False


def test_logic_of_last_condition_is_ignored():
    ev = ConditionEvaluator()
    conds = [Condition(field="a", operator="equals", value=1, logic=OR)]
    assert ev.evaluate(conds, {"a": 2}) is False


def test_fold_results():
    assert fold_results(False, [(OR, True), (AND, True)]) is True
    assert fold_results(True, [(AND, False), (OR, False)]) is False
    assert fold_results(True, []) is True
