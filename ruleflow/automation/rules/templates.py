# ruleflow/automation/rules/templates.py
from __future__ import annotations

import json
import re
from typing import Any, Dict, Mapping

_TEMPLATE_RE = re.compile(r"\{\{([^}]+)\}\}")


def get_nested_value(data: Any, path: str) -> Any:
    """
    Достаёт значение по пути вида "company.status".
    Любой отсутствующий шаг → None (без исключений).
    Целочисленный сегмент работает как индекс списка: "items.0.name".
    """
    current = data
    for key in str(path).split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(key)
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(key)]
            except (ValueError, IndexError):
                return None
        else:
            return None
    return current


def stringify(value: Any) -> str:
    """Строковое представление для шаблонов и строковых операторов."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def interpolate(template: Any, data: Dict[str, Any]) -> Any:
    """
    Подставляет {{path}} из data. Неразрешённый путь → пустая строка.
    Не-строки возвращаются как есть.
    """
    if not isinstance(template, str):
        return template

    def _sub(match: "re.Match[str]") -> str:
        return stringify(get_nested_value(data, match.group(1).strip()))

    return _TEMPLATE_RE.sub(_sub, template)


def interpolate_mapping(values: Any, data: Dict[str, Any]) -> Dict[str, Any]:
    """Интерполирует строковые значения словаря (один уровень, как data у create/update)."""
    if not values:
        return {}
    if not isinstance(values, Mapping):
        raise TypeError("data must be an object")
    return {str(k): interpolate(v, data) for k, v in values.items()}
