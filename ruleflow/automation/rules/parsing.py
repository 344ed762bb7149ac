# ruleflow/automation/rules/parsing.py
"""
Разбор «сырых» conditions / actions правила в типизированные объекты.

Любая проблема со структурой → RuleDefinitionError с путём до места ошибки,
например "actions[2].config: must be an object".

Два режима:
  strict=False (движок): пропущенный type действия → "", любая logic,
      кроме AND, считается OR. Такое действие просто не выполнится
      (Unknown action type), остальные отработают.
  strict=True (загрузка YAML / API): то же самое считается ошибкой,
      чтобы кривое правило не попало в хранилище.
"""
from __future__ import annotations

import json
import math
from typing import Any, Dict, List, Union

from .evaluator import to_number
from .types import Action, Condition, ConditionLogic, RuleDefinitionError

RawList = Union[List[Dict[str, Any]], str, None]


def _load_list(raw: RawList, path: str) -> List[Any]:
    # в старых записях conditions/actions лежат JSON-строкой
    if raw is None:
        return []
    if isinstance(raw, str):
        if not raw.strip():
            return []
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RuleDefinitionError(f"{path}: invalid JSON ({exc})") from exc
    if not isinstance(raw, list):
        raise RuleDefinitionError(f"{path}: must be an array")
    return raw


def _require_dict(obj: Any, path: str) -> Dict[str, Any]:
    if not isinstance(obj, dict):
        raise RuleDefinitionError(f"{path}: must be an object")
    return obj


def _require_str(v: Any, path: str) -> str:
    if not isinstance(v, str) or not v.strip():
        raise RuleDefinitionError(f"{path}: must be a non-empty string")
    return v


def _parse_logic(v: Any, path: str, strict: bool) -> ConditionLogic:
    if v is None or v == "":
        return ConditionLogic.AND
    name = str(v).upper()
    if name == ConditionLogic.AND.value:
        return ConditionLogic.AND
    if strict and name != ConditionLogic.OR.value:
        raise RuleDefinitionError(f"{path}: must be AND or OR")
    return ConditionLogic.OR


def _parse_action_type(v: Any, path: str, strict: bool) -> str:
    if strict:
        return _require_str(v, path)
    if v is None:
        return ""
    return str(v)


def _parse_order(v: Any, path: str) -> Union[int, float]:
    if v is None or v == "":
        return 0
    if isinstance(v, bool):
        raise RuleDefinitionError(f"{path}: must be a number")
    if isinstance(v, (int, float)) and not math.isnan(v):
        return v
    if isinstance(v, str):
        num = to_number(v)
        if not math.isnan(num):
            return int(num) if num.is_integer() else num
    raise RuleDefinitionError(f"{path}: must be a number")


def parse_conditions(raw: RawList, *, strict: bool = False) -> List[Condition]:
    out: List[Condition] = []
    for i, item in enumerate(_load_list(raw, "conditions")):
        path = f"conditions[{i}]"
        d = _require_dict(item, path)
        out.append(
            Condition(
                field=_require_str(d.get("field"), f"{path}.field"),
                # оператор не проверяем: неизвестный просто даст False при проверке
                operator=str(d.get("operator", "")),
                value=d.get("value"),
                logic=_parse_logic(d.get("logic"), f"{path}.logic", strict),
                id=d.get("id"),
            )
        )
    return out


def parse_actions(raw: RawList, *, strict: bool = False) -> List[Action]:
    """Разбирает actions и сортирует по order (стабильно, порядок объявления сохраняется)."""
    out: List[Action] = []
    for i, item in enumerate(_load_list(raw, "actions")):
        path = f"actions[{i}]"
        d = _require_dict(item, path)

        config = d.get("config") or {}
        _require_dict(config, f"{path}.config")

        out.append(
            Action(
                id=str(d.get("id") or f"a{i + 1}"),
                type=_parse_action_type(d.get("type"), f"{path}.type", strict),
                config=config,
                order=_parse_order(d.get("order"), f"{path}.order"),
            )
        )

    out.sort(key=lambda a: a.order)
    return out
