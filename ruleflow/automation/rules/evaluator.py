# ruleflow/automation/rules/evaluator.py
from __future__ import annotations

import logging
import math
import re
from functools import reduce
from typing import Any, Callable, Dict, Iterable, Sequence, Tuple

from .templates import get_nested_value, stringify
from .types import Condition, ConditionLogic, ConditionOperator

log = logging.getLogger("automation")


# ---------------------------------------------------------------------------
# Приведение типов (числа / строки / «пустота»)
# ---------------------------------------------------------------------------

# десятичная запись с необязательной экспонентой; "1_000", "inf", "nan" не числа
_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def to_number(value: Any) -> float:
    """Число из значения; всё, что не число, → NaN (любое сравнение с ним ложно)."""
    if value is None:
        return math.nan
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return 0.0
        if not _NUMBER_RE.fullmatch(s):
            return math.nan
        return float(s)
    return math.nan


def loose_equals(a: Any, b: Any) -> bool:
    """Нестрогое равенство: "10" == 10, "true" != True, None == None."""
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    if isinstance(a, (int, float, bool)) or isinstance(b, (int, float, bool)):
        na, nb = to_number(a), to_number(b)
        if not (math.isnan(na) or math.isnan(nb)):
            return na == nb
    return a == b


def strict_equals(a: Any, b: Any) -> bool:
    """Строгое равенство без приведения: True != 1, 0 != False, 1 == 1.0."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    return type(a) is type(b) and a == b


def _in_list(value: Any, target: Any) -> bool:
    if not isinstance(target, (list, tuple)):
        return False
    return any(strict_equals(value, item) for item in target)


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _lower(value: Any) -> str:
    return stringify(value).lower()


def _between(value: Any, target: Any) -> bool:
    if isinstance(target, (list, tuple)) and len(target) == 2:
        val = to_number(value)
        return to_number(target[0]) <= val <= to_number(target[1])
    return False


def _matches(value: Any, pattern: Any) -> bool:
    if pattern is None:
        return False
    try:
        return re.search(str(pattern), stringify(value)) is not None
    except re.error:
        return False


_OPERATORS: Dict[ConditionOperator, Callable[[Any, Any], bool]] = {
    ConditionOperator.EQUALS: loose_equals,
    ConditionOperator.NOT_EQUALS: lambda a, b: not loose_equals(a, b),
    ConditionOperator.CONTAINS: lambda a, b: _lower(b) in _lower(a),
    ConditionOperator.NOT_CONTAINS: lambda a, b: _lower(b) not in _lower(a),
    ConditionOperator.STARTS_WITH: lambda a, b: _lower(a).startswith(_lower(b)),
    ConditionOperator.ENDS_WITH: lambda a, b: _lower(a).endswith(_lower(b)),
    ConditionOperator.GREATER_THAN: lambda a, b: to_number(a) > to_number(b),
    ConditionOperator.LESS_THAN: lambda a, b: to_number(a) < to_number(b),
    ConditionOperator.GREATER_OR_EQUAL: lambda a, b: to_number(a) >= to_number(b),
    ConditionOperator.LESS_OR_EQUAL: lambda a, b: to_number(a) <= to_number(b),
    ConditionOperator.IS_EMPTY: lambda a, b: _is_empty(a),
    ConditionOperator.IS_NOT_EMPTY: lambda a, b: not _is_empty(a),
    ConditionOperator.IS_NULL: lambda a, b: a is None,
    ConditionOperator.IS_NOT_NULL: lambda a, b: a is not None,
    ConditionOperator.IN_LIST: _in_list,
    ConditionOperator.IN: _in_list,
    ConditionOperator.NOT_IN_LIST: lambda a, b: not _in_list(a, b),
    ConditionOperator.MATCHES_REGEX: _matches,
    ConditionOperator.BETWEEN: _between,
}


class ConditionEvaluator:
    """
    Проверяет условия правила против trigger_data.

    Условия сворачиваются слева направо: logic условия i
    соединяет накопленный результат с результатом условия i+1.
    Никаких приоритетов AND над OR нет:
      [A(OR), B(AND), C] → (A OR B) AND C
    """

    # ------------------------------------------------------------------
    def evaluate(self, conditions: Sequence[Condition], data: Dict[str, Any]) -> bool:
        if not conditions:
            return True

        results = [self.evaluate_condition(c, data) for c in conditions]
        joins = [c.logic for c in conditions[:-1]]
        return fold_results(results[0], zip(joins, results[1:]))

    # ------------------------------------------------------------------
    def evaluate_condition(self, cond: Condition, data: Dict[str, Any]) -> bool:
        field_value = get_nested_value(data, cond.field)
        return self.evaluate_single(field_value, cond.operator, cond.value)

    # ------------------------------------------------------------------
    @staticmethod
    def evaluate_single(field_value: Any, operator: str, target: Any) -> bool:
        """Одно сравнение. Неизвестный оператор и любые ошибки → False."""
        try:
            op = ConditionOperator(operator)
        except ValueError:
            log.warning("Unknown operator: %s", operator)
            return False

        try:
            return bool(_OPERATORS[op](field_value, target))
        except Exception as exc:  # noqa: BLE001
            log.debug("condition %s failed on %r: %s", operator, field_value, exc)
            return False


def fold_results(
    first: bool,
    pairs: Iterable[Tuple[ConditionLogic, bool]],
) -> bool:
    """Левая свёртка (logic предыдущего условия, результат следующего)."""
    def _step(acc: bool, pair: Tuple[ConditionLogic, bool]) -> bool:
        logic, value = pair
        return (acc or value) if logic == ConditionLogic.OR else (acc and value)

    return reduce(_step, pairs, first)
